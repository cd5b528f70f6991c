"""
Pytest configuration for Django tests.
"""
import os

# Set the Django settings module before pytest-django configures Django
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "storefront.settings")
os.environ.setdefault("ORDERS_DB_ENGINE", "sqlite")
