"""Dev-serve backend: application server supervisor and live-reload proxy."""
