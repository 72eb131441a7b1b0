"""Shipping addresses stored in older shapes still load as structured addresses."""

from datetime import datetime
from decimal import Decimal

import pytest

from conftest import ADDRESS, MEMORY_DB, ok
from storefront.backend import OrderRepo
from storefront.backend._rows import order_from_row
from storefront.db import OrderTable, create_database
from storefront.models import OrderStatus, ShippingAddress

PLACED = datetime(2025, 6, 1, 9, 30)


def order_row(shipping_address, order_id="o-legacy"):
    return OrderTable(
        id=order_id,
        user_id="user-1",
        shipping_address=shipping_address,
        subtotal=Decimal("50000.00"),
        discount_amount=Decimal("0.00"),
        total=Decimal("50000.00"),
        status=OrderStatus.DELIVERED.value,
        created_at=PLACED,
        updated_at=PLACED,
    )


class TestCoerce:
    def test_free_form_string_lands_in_first_line(self):
        address = ShippingAddress.coerce("  KN 5 Rd, Kigali, Rwanda ")
        assert address.address_line1 == "KN 5 Rd, Kigali, Rwanda"
        assert address.city == ""
        assert address.missing_fields() == ["first_name", "last_name", "city", "country", "phone"]

    def test_camel_case_keys(self):
        address = ShippingAddress.coerce({
            "firstName": "Ada",
            "lastName": "Customer",
            "addressLine1": "KN 5 Rd",
            "addressLine2": "Apt 4",
            "city": "Kigali",
            "province": "Kigali City",
            "postalCode": "00100",
            "country": "Rwanda",
            "phone_number": "0781234567",
        })
        assert address == ShippingAddress(
            first_name="Ada",
            last_name="Customer",
            address_line1="KN 5 Rd",
            address_line2="Apt 4",
            city="Kigali",
            state="Kigali City",
            postal_code="00100",
            country="Rwanda",
            phone="0781234567",
        )

    def test_current_shape_round_trips(self):
        assert ShippingAddress.coerce(ADDRESS.to_dict()) == ADDRESS
        assert ShippingAddress.coerce(ADDRESS) is ADDRESS

    def test_missing_address(self):
        assert ShippingAddress.coerce(None) == ShippingAddress()

    @pytest.mark.parametrize("raw", [42, ["KN 5 Rd", "Kigali"]])
    def test_unsupported_shape(self, raw):
        with pytest.raises(TypeError, match="Unsupported shipping address shape"):
            ShippingAddress.coerce(raw)


class TestLegacyRows:
    def test_string_column_maps_to_structured_address(self):
        order = order_from_row(order_row("12 Old Market St, Huye"))
        assert order.shipping_address.address_line1 == "12 Old Market St, Huye"
        assert order.shipping_address.full_name == ""

    def test_stored_string_loads_through_repo(self, run):
        async def scenario():
            session_factory, engine = await create_database(MEMORY_DB)
            try:
                async with session_factory() as session:
                    session.add(order_row("12 Old Market St, Huye"))
                    await session.commit()
                return await OrderRepo(session_factory).get("o-legacy")
            finally:
                await engine.dispose()

        order = ok(run(scenario))
        assert order.status is OrderStatus.DELIVERED
        assert order.shipping_address == ShippingAddress(address_line1="12 Old Market St, Huye")
