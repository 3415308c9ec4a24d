"""
Accounts core router modules for handling requests to various endpoints

This module exports the ``router`` object which includes all known
endpoints and path operations of the API.
"""

from fastapi import APIRouter

# The order of the imports defines the order of the endpoints in the OpenAPI documentation
from . import login, users, health


router = APIRouter()
router.include_router(login.router)
router.include_router(users.router)
router.include_router(health.router)
