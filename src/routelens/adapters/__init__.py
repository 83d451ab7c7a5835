"""Framework adapters -- one per supported web framework.

Each adapter recognises its framework's way of declaring routes and data
models and hands the recognised pieces to :mod:`routelens.pipeline`, which
turns them into canonical :class:`~routelens.models.Route` and
:class:`~routelens.models.Schema` values.

Third-party packages can add adapters by declaring an entry point in the
``routelens.adapters`` group whose target is a
:class:`FrameworkAdapter` subclass::

    [project.entry-points."routelens.adapters"]
    falcon = "routelens_falcon:FalconAdapter"
"""

from routelens.adapters.aspnet import AspNetAdapter
from routelens.adapters.base import FrameworkAdapter
from routelens.adapters.drf import DRFAdapter
from routelens.adapters.fastapi import FastAPIAdapter
from routelens.adapters.flask import FlaskAdapter
from routelens.adapters.gleam import GleamAdapter
from routelens.adapters.laravel import LaravelAdapter
from routelens.adapters.phoenix import PhoenixAdapter
from routelens.adapters.play import PlayAdapter
from routelens.adapters.rails import RailsAdapter
from routelens.adapters.rocket import RocketAdapter
from routelens.adapters.sinatra import SinatraAdapter
from routelens.adapters.slim import SlimAdapter
from routelens.adapters.spring import SpringAdapter
from routelens.adapters.symfony import SymfonyAdapter

BUILTIN_ADAPTERS: tuple[type[FrameworkAdapter], ...] = (
    FastAPIAdapter,
    FlaskAdapter,
    SpringAdapter,
    AspNetAdapter,
    RocketAdapter,
    LaravelAdapter,
    PlayAdapter,
    PhoenixAdapter,
    GleamAdapter,
    SinatraAdapter,
    DRFAdapter,
    SlimAdapter,
    SymfonyAdapter,
    RailsAdapter,
)
"""Adapters every default registry starts with, in registration order."""

__all__ = [
    "BUILTIN_ADAPTERS",
    "AspNetAdapter",
    "DRFAdapter",
    "FastAPIAdapter",
    "FlaskAdapter",
    "FrameworkAdapter",
    "GleamAdapter",
    "LaravelAdapter",
    "PhoenixAdapter",
    "PlayAdapter",
    "RailsAdapter",
    "RocketAdapter",
    "SinatraAdapter",
    "SlimAdapter",
    "SpringAdapter",
    "SymfonyAdapter",
]
