"""
FastAPI dependencies resolving the components held on app.state.

Components are constructed once by the app factory, so every request in
an app instance shares them and separate app instances never do.
"""

from fastapi import Request

from media_gateway.core.config import GatewayConfig
from media_gateway.downloads.orchestrator import DownloadOrchestrator
from media_gateway.downloads.registry import ArtifactRegistry
from media_gateway.oauth.connections import ConnectionStore
from media_gateway.oauth.coordinator import OAuthCoordinator


def get_config(request: Request) -> GatewayConfig:
    return request.app.state.config


def get_orchestrator(request: Request) -> DownloadOrchestrator:
    return request.app.state.orchestrator


def get_registry(request: Request) -> ArtifactRegistry:
    return request.app.state.registry


def get_oauth(request: Request) -> OAuthCoordinator:
    return request.app.state.oauth


def get_connections(request: Request) -> ConnectionStore:
    return request.app.state.connections
