"""Services module initialization: external model, embedding and live-audio clients."""
