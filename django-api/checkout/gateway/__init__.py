"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing
- WompiGateway for production
"""

from checkout.conf import get_checkout_settings
from checkout.gateway.fake_adapter import FakeGateway
from checkout.gateway.port import AcceptanceTokens, GatewayError, GatewayTransaction, PaymentGateway
from checkout.gateway.wompi_adapter import WompiConfig, WompiGateway

_current_gateway: PaymentGateway | None = None


def build_gateway() -> PaymentGateway:
    """Build the gateway selected by the CHECKOUT_GATEWAY setting."""
    conf = get_checkout_settings()
    if conf.gateway == "wompi":
        return WompiGateway(
            WompiConfig(
                public_key=conf.wompi_public_key,
                private_key=conf.wompi_private_key,
                base_url=conf.wompi_base_url,
                timeout_seconds=conf.wompi_timeout_seconds,
            )
        )
    return FakeGateway()


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, building it on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = build_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to the configured gateway."""
    global _current_gateway
    _current_gateway = None


__all__ = [
    "AcceptanceTokens",
    "FakeGateway",
    "GatewayError",
    "GatewayTransaction",
    "PaymentGateway",
    "WompiConfig",
    "WompiGateway",
    "build_gateway",
    "get_gateway",
    "reset_gateway",
    "set_gateway",
]
