"""
Concurrent order placement against the real database.

Each worker thread gets its own connection, so these tests commit for real
and use ``TransactionTestCase``.
"""
import json
import threading

from django.db import connection
from django.test import Client, TransactionTestCase

from orders.infra.models import IdempotencyKey, OrderORM, ProductORM
from orders.test.factories import make_product, order_payload


def customer_headers(index):
    return {"X-User-ID": f"customer-{index}", "X-User-Email": f"customer{index}@example.com"}


class ConcurrentCheckoutTest(TransactionTestCase):
    workers = 6

    def race(self, requests):
        """POST every ``(payload, headers)`` pair at once; returns the responses."""
        barrier = threading.Barrier(len(requests))
        responses = []

        def attempt(payload, headers):
            client = Client()
            try:
                barrier.wait()
                responses.append(client.post(
                    "/api/orders/",
                    data=json.dumps(payload),
                    content_type="application/json",
                    headers=headers,
                ))
            finally:
                connection.close()

        threads = [threading.Thread(target=attempt, args=request) for request in requests]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return responses

    def test_last_unit_is_sold_once(self):
        doughnut = make_product(name="Doughnut", price="5.00", stock=1)
        payload = order_payload([(doughnut, 1)], "504.40")

        responses = self.race([(payload, customer_headers(i)) for i in range(self.workers)])

        codes = sorted(response.status_code for response in responses)
        self.assertEqual(codes, [201] + [400] * (self.workers - 1))
        for response in responses:
            if response.status_code == 400:
                error = response.json()["error"]
                self.assertEqual(error["code"], "INSUFFICIENT_STOCK")
                self.assertEqual(error["details"], {"product": str(doughnut.id), "available": 0, "requested": 1})

        self.assertEqual(ProductORM.objects.get(id=doughnut.id).stock, 0)
        self.assertEqual(OrderORM.objects.filter(status="pending").count(), 1)

    def test_same_idempotency_key_places_one_order(self):
        apple = make_product(name="Apple", price="100.00", stock=10)
        payload = order_payload([(apple, 1)], "607.00")
        headers = {**customer_headers(1), "Idempotency-Key": "same-key-123"}

        responses = self.race([(payload, headers)] * 4)

        codes = [response.status_code for response in responses]
        self.assertIn(201, codes)
        self.assertTrue(set(codes) <= {201, 409}, codes)
        order_ids = {response.json()["order"]["id"] for response in responses if response.status_code == 201}
        self.assertEqual(len(order_ids), 1)

        self.assertEqual(OrderORM.objects.count(), 1)
        self.assertEqual(ProductORM.objects.get(id=apple.id).stock, 9)
        key = IdempotencyKey.objects.get()
        self.assertEqual(key.response_status, 201)
        self.assertEqual(key.response_payload["order"]["id"], order_ids.pop())
