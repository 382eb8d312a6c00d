import structlog
from django.apps import AppConfig

logger = structlog.get_logger(__name__)


class CheckoutConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "checkout"

    def ready(self) -> None:
        from checkout.conf import get_checkout_settings
        from checkout.container import get_lock_store
        from checkout.stores import CartLockSweeper

        conf = get_checkout_settings()
        if conf.lock_sweeper_enabled and conf.lock_backend == "memory":
            CartLockSweeper(get_lock_store(), conf.lock_sweep_interval).start()
            logger.info("Cart lock sweeper started", interval_seconds=conf.lock_sweep_interval.total_seconds())
