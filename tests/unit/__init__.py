"""Unit tests: no network, fake clocks and fake clients."""
