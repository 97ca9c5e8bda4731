"""Run the checkout API: python -m pos_checkout."""
from pos_checkout.api.main import run

run()
