"""Mailpulse: debounced alerts from age-weighted email priority scores."""
