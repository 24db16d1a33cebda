"""Trip planning wizard: step orchestration, swipe questions, image hydration and paywall."""

__version__ = "0.1.0"
