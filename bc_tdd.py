#!/usr/bin/env python3
# bc_tdd.py
# -*- coding: utf-8 -*-
"""
Entry point for running the harness from a source checkout.
"""

from workflow.cli import cli

if __name__ == "__main__":
    cli()
