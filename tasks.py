"""Invoke entry point: ``invoke --list``."""

from invoke import Collection

from photofolio.cli import admin

ns = Collection.from_module(admin)
