"""
URL configuration for the storefront project.
"""
from django.contrib import admin
from django.urls import include, path

from orders.api.graphql import graphql_view

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/orders/", include("orders.api.urls")),
    path("graphql/", graphql_view, name="graphql"),
]
