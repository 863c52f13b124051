# workflow/__init__.py
# -*- coding: utf-8 -*-
"""Workflow stages of the TDD cycle and the command-line interface."""
