# settings/__init__.py
# -*- coding: utf-8 -*-
"""Harness configuration models and loader."""

from .config_loader import dump_settings, load_harness_settings
from .config_models import HarnessSettings

__all__ = ["HarnessSettings", "dump_settings", "load_harness_settings"]
