"""Procurement Load Testing: Locust entry point.

Imports every user class from the scenarios package so Locust discovers
them. Run specific scenarios with Locust's class selection.

Usage:
    # All scenarios (web UI):
    locust -f loadtests/locustfile.py

    # Negotiation and delivery traffic only:
    locust -f loadtests/locustfile.py NegotiationUser HandoverUser

    # Confirmation race stress test:
    locust -f loadtests/locustfile.py ConfirmationRaceUser

    # Headless (CI mode):
    locust -f loadtests/locustfile.py HandoverUser --headless \
           -u 50 -r 5 -t 300s --csv=results/loadtest
"""

import logging
import time

import requests
from locust import events

from loadtests.helpers.response import extract_error_detail
from loadtests.scenarios.handover import ConfirmationDeskUser, HandoverUser  # noqa: F401
from loadtests.scenarios.negotiation import NegotiationUser  # noqa: F401
from loadtests.scenarios.stress import ConfirmationRaceUser, OrderFloodUser  # noqa: F401

logger = logging.getLogger("loadtest")


@events.request.add_listener
def on_request(request_type, name, response, exception, **_kw):
    """Log the API error body for every failed request.

    A 409 shows the conflict reason and the order's current status rather
    than only the status code.
    """
    if exception:
        logger.error("[EXCEPTION] %s %s: %s", request_type, name, exception)
    elif response is not None and response.status_code >= 400:
        logger.error("[%s] %s %s: %s", response.status_code, request_type, name, extract_error_detail(response))


@events.test_start.add_listener
def on_test_start(environment, **_kwargs):
    print(f"\n[LOADTEST] Started at {time.strftime('%H:%M:%S')}")
    print(f"[LOADTEST] Target host: {environment.host}")
    print()


@events.test_stop.add_listener
def on_test_stop(environment, **_kwargs):
    """Check the service survived the run."""
    print(f"\n[LOADTEST] Stopped at {time.strftime('%H:%M:%S')}")
    try:
        resp = requests.get(f"{environment.host}/health", timeout=5)
        print(f"[LOADTEST] Health after run: {resp.status_code} {resp.text}\n")
    except requests.RequestException as e:
        print(f"[LOADTEST] Could not reach health endpoint: {e}\n")
