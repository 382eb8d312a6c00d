"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/.
Catalog models (Club, Event, Ticket, MenuItem, MenuItemVariant) are
read-only from the engine's point of view.
"""

import uuid

from django.db import models

MONEY = {"max_digits": 14, "decimal_places": 2}
FEE = {"max_digits": 20, "decimal_places": 6}


class Club(models.Model):
    """Persistence model for venues."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    open_days = models.JSONField(default=list, blank=True)
    open_hours = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name


class Event(models.Model):
    """Persistence model for dated events."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    club = models.ForeignKey(Club, on_delete=models.CASCADE, related_name="events")
    name = models.CharField(max_length=255)
    date = models.DateField()
    open_time = models.TimeField(null=True, blank=True)
    close_time = models.TimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["date"]
        indexes = [
            models.Index(fields=["club", "date"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} - {self.date}"


class Ticket(models.Model):
    """Persistence model for tickets."""

    class Category(models.TextChoices):
        GENERAL = "general"
        EVENT = "event"
        FREE = "free"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    club = models.ForeignKey(Club, on_delete=models.CASCADE, related_name="tickets")
    event = models.ForeignKey(
        Event, on_delete=models.SET_NULL, null=True, blank=True, related_name="tickets"
    )
    name = models.CharField(max_length=255)
    category = models.CharField(max_length=16, choices=Category.choices)
    price = models.DecimalField(**MONEY)
    max_per_person = models.PositiveIntegerField()
    quantity = models.PositiveIntegerField(null=True, blank=True)
    available_date = models.DateField(null=True, blank=True)
    dynamic_pricing_enabled = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.name} - {self.price}"


class MenuItem(models.Model):
    """Persistence model for menu items."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    club = models.ForeignKey(Club, on_delete=models.CASCADE, related_name="menu_items")
    name = models.CharField(max_length=255)
    price = models.DecimalField(**MONEY, null=True, blank=True)
    max_per_person = models.PositiveIntegerField(null=True, blank=True)
    has_variants = models.BooleanField(default=False)
    dynamic_pricing_enabled = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name


class MenuItemVariant(models.Model):
    """Persistence model for menu item variants."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    menu_item = models.ForeignKey(MenuItem, on_delete=models.CASCADE, related_name="variants")
    name = models.CharField(max_length=255)
    price = models.DecimalField(**MONEY)
    max_per_person = models.PositiveIntegerField(null=True, blank=True)
    dynamic_pricing_enabled = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)

    def __str__(self) -> str:
        return f"{self.menu_item.name} - {self.name}"


class CartItem(models.Model):
    """Persistence model for cart lines."""

    class ItemType(models.TextChoices):
        TICKET = "ticket"
        MENU = "menu"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner_key = models.CharField(max_length=255)
    item_type = models.CharField(max_length=8, choices=ItemType.choices)
    ref_id = models.UUIDField()
    variant_id = models.UUIDField(null=True, blank=True)
    quantity = models.PositiveIntegerField()
    date = models.DateField()
    club = models.ForeignKey(Club, on_delete=models.CASCADE, related_name="+")
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["owner_key"]),
            models.Index(fields=["updated_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.owner_key} - {self.item_type} x{self.quantity}"


class CheckoutTransaction(models.Model):
    """Persistence model for checkout transactions."""

    class Status(models.TextChoices):
        PENDING = "PENDING"
        APPROVED = "APPROVED"
        DECLINED = "DECLINED"
        VOIDED = "VOIDED"
        ERROR = "ERROR"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    club = models.ForeignKey(Club, on_delete=models.PROTECT, related_name="transactions")
    owner_key = models.CharField(max_length=255)
    buyer_email = models.EmailField()
    ticket_date = models.DateField(null=True, blank=True)
    is_event_checkout = models.BooleanField(default=False)

    ticket_subtotal = models.DecimalField(**FEE)
    menu_subtotal = models.DecimalField(**FEE)
    platform_fee_tickets = models.DecimalField(**FEE)
    platform_fee_menu = models.DecimalField(**FEE)
    platform_receives = models.DecimalField(**FEE)
    gateway_fee = models.DecimalField(**FEE)
    gateway_iva = models.DecimalField(**FEE)
    gateway_alloc_tickets = models.DecimalField(**FEE)
    gateway_alloc_menu = models.DecimalField(**FEE)
    total_paid = models.DecimalField(**FEE)
    club_receives = models.DecimalField(**FEE)

    lines = models.JSONField(default=list)
    priced_at = models.DateTimeField()

    customer_full_name = models.CharField(max_length=255, blank=True)
    customer_phone_number = models.CharField(max_length=64, blank=True)
    customer_legal_id = models.CharField(max_length=64, blank=True)
    customer_legal_id_type = models.CharField(max_length=16, blank=True)

    payment_method = models.CharField(max_length=32, blank=True)
    payment_provider = models.CharField(max_length=32)
    payment_status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    provider_reference = models.CharField(max_length=255, unique=True)
    provider_transaction_id = models.CharField(max_length=255, null=True, blank=True)
    qr_payload = models.TextField(null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["owner_key"]),
            models.Index(fields=["provider_transaction_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.provider_reference} ({self.payment_status})"


class TicketPurchase(models.Model):
    """Persistence model for one purchased ticket unit."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    transaction = models.ForeignKey(
        CheckoutTransaction, on_delete=models.CASCADE, related_name="ticket_purchases"
    )
    ticket = models.ForeignKey(Ticket, on_delete=models.PROTECT, related_name="purchases")
    club = models.ForeignKey(Club, on_delete=models.PROTECT, related_name="+")
    event = models.ForeignKey(Event, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    owner_key = models.CharField(max_length=255)
    buyer_email = models.EmailField()
    date = models.DateField()
    original_base_price = models.DecimalField(**MONEY)
    price_at_checkout = models.DecimalField(**MONEY)
    dynamic_pricing_was_applied = models.BooleanField(default=False)
    pricing_reason = models.CharField(max_length=64, blank=True)
    club_receives = models.DecimalField(**FEE)
    platform_fee = models.DecimalField(**FEE)
    platform_fee_rate = models.DecimalField(max_digits=6, decimal_places=4)
    qr_payload = models.TextField()
    sequence_index = models.PositiveIntegerField()
    sequence_total = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["sequence_index"]
        indexes = [
            models.Index(fields=["ticket", "date"]),
        ]

    def __str__(self) -> str:
        return f"{self.ticket_id} {self.sequence_index}/{self.sequence_total}"


class MenuPurchase(models.Model):
    """Persistence model for one purchased menu line."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    transaction = models.ForeignKey(
        CheckoutTransaction, on_delete=models.CASCADE, related_name="menu_purchases"
    )
    menu_item = models.ForeignKey(MenuItem, on_delete=models.PROTECT, related_name="purchases")
    variant = models.ForeignKey(
        MenuItemVariant, on_delete=models.PROTECT, null=True, blank=True, related_name="purchases"
    )
    club = models.ForeignKey(Club, on_delete=models.PROTECT, related_name="+")
    owner_key = models.CharField(max_length=255)
    buyer_email = models.EmailField()
    quantity = models.PositiveIntegerField()
    original_base_price = models.DecimalField(**MONEY)
    price_at_checkout = models.DecimalField(**MONEY)
    dynamic_pricing_was_applied = models.BooleanField(default=False)
    pricing_reason = models.CharField(max_length=64, blank=True)
    club_receives = models.DecimalField(**FEE)
    platform_fee = models.DecimalField(**FEE)
    platform_fee_rate = models.DecimalField(max_digits=6, decimal_places=4)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.menu_item_id} x{self.quantity}"
