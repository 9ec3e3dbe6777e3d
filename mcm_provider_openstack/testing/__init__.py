"""Test doubles for the OpenStack machine driver."""
