import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Ensure project root is on sys.path to allow `import services`, `import utils`, etc.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from api.container import build_container  # noqa: E402
from models.api import OrderCreateRequest  # noqa: E402
from models.customer import Customer  # noqa: E402
from models.enums import PaymentMethod  # noqa: E402
from models.order import Address, Order, PackageDetails, PackageItem, PaymentDetails, RecipientDetails  # noqa: E402
from models.pricing import Dimensions  # noqa: E402
from services.estimation import DeterministicEstimator, FallbackEstimator  # noqa: E402

CUSTOMER_ID = "CUST-TEST-1"


def make_order_request(**overrides) -> OrderCreateRequest:
    """Mumbai -> Delhi COD shipment worth 25000."""
    data = {
        "pickup_address": Address(address_line1="12 Link Road", city="Mumbai", pincode="400001"),
        "recipient_details": RecipientDetails(
            name="Priya Sharma",
            phone="9876543210",
            email="priya@example.com",
            address=Address(address_line1="5 Janpath", city="Delhi", pincode="110001"),
        ),
        "package_details": PackageDetails(
            items=[PackageItem(name="Laptop", quantity=1, price=25000)],
            dead_weight_kg=2.5,
            dimensions_cm=Dimensions(length=40, width=30, height=10),
        ),
        "payment_details": PaymentDetails(method=PaymentMethod.COD, total_value=25000),
    }
    data.update(overrides)
    return OrderCreateRequest(**data)


@pytest.fixture
def order_request() -> OrderCreateRequest:
    return make_order_request()


@pytest.fixture
def container():
    """Offline service graph: deterministic estimates, in-memory store, no network yet."""
    return build_container(estimator=FallbackEstimator(None, DeterministicEstimator()))


@pytest_asyncio.fixture
async def seeded(container):
    """Container with Mumbai and Delhi networks and one customer."""
    await container.resolver.initialize_delivery_network("Maharashtra", ["Mumbai"])
    await container.resolver.initialize_delivery_network("Delhi", ["Delhi"])
    await container.store.add_customer(Customer(customer_id=CUSTOMER_ID, name="Test Seller"))
    return container


def make_order(order_id: str = "order_1", seller_order_id: str = "ORD-1-AAAAAA", **overrides) -> Order:
    """Stored-order shape of ``make_order_request`` without going through the workflow."""
    request = make_order_request()
    data = {
        "order_id": order_id,
        "seller_order_id": seller_order_id,
        "customer_id": "CUST-1",
        "pickup_address": request.pickup_address,
        "recipient_details": request.recipient_details,
        "package_details": request.package_details,
        "payment_details": request.payment_details,
    }
    data.update(overrides)
    return Order(**data)
