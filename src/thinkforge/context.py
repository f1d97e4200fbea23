"""Per-command wiring of configuration, logging and collaborators."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .auth.service import AuthService, AuthSession, AuthSessionStore
from .backend.datastore import Datastore, RestDatastore
from .backend.transport import RestTransport
from .config import ThinkForgeConfig, load_config
from .core.logging import configure_logger
from .core.workspace import WorkspaceLayout, ensure_workspace
from .inference import InferenceClient, build_inference_client

__all__ = ["AppContext"]


@dataclass
class AppContext:
    """Everything a command needs, built lazily from configuration.

    Tests construct the context directly and pass ``transport``,
    ``inference`` or ``datastore`` to bypass the network.
    """

    config: ThinkForgeConfig
    workspace: WorkspaceLayout
    logger: logging.Logger
    log_path: Optional[Path] = None
    env: Mapping[str, str] = field(default_factory=lambda: os.environ)
    transport: Optional[RestTransport] = None
    inference: Optional[InferenceClient] = None
    datastore: Optional[Datastore] = None

    @classmethod
    def build(
        cls,
        command: str,
        *,
        config_path: Optional[Path] = None,
        verbose: bool = False,
        env: Mapping[str, str] | None = None,
    ) -> "AppContext":
        load_dotenv()
        env_map = os.environ if env is None else env
        config = load_config(explicit_path=config_path, env=env_map)
        workspace = ensure_workspace(env=env_map, path=config.data_home)
        logger, log_path = configure_logger(
            f"thinkforge.commands.{command}",
            log_dir=workspace.path_for("logs"),
            level=config.logging.level,
            verbose=verbose or config.logging.verbose,
        )
        return cls(
            config=config,
            workspace=workspace,
            logger=logger,
            log_path=log_path,
            env=env_map,
        )

    def get_transport(self) -> RestTransport:
        if self.transport is None:
            backend = self.config.backend
            self.transport = RestTransport(
                backend.resolved_url(self.env),
                backend.resolved_key(self.env),
                timeout=backend.request_timeout_seconds,
                logger=self.logger,
            )
        return self.transport

    def get_inference(self) -> InferenceClient:
        if self.inference is None:
            self.inference = build_inference_client(
                self.config.inference, logger=self.logger
            )
        return self.inference

    def auth_service(self) -> AuthService:
        return AuthService(
            self.get_transport(),
            AuthSessionStore(self.workspace.path_for("auth")),
            email_redirect_to=self.config.backend.email_redirect_to,
            logger=self.logger,
        )

    def datastore_for(self, session: AuthSession) -> Datastore:
        if self.datastore is None:
            self.datastore = RestDatastore(
                self.get_transport(), access_token=session.access_token
            )
        return self.datastore
