"""Asset fulfillment backend: platforms, inventory, pricing, orders and invoicing."""
