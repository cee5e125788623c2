"""Catalog archive upload endpoint."""

from __future__ import annotations

import logging
from typing import BinaryIO

from ..exceptions import ContentError
from ..models import CSAR, ParsingError
from .transport import RestClient, decode_model

_logger = logging.getLogger(__name__)


class Catalog:
    """CatalogService implementation over the REST API."""

    def __init__(self, rest: RestClient) -> None:
        self._rest = rest

    async def upload_csar(self, archive: BinaryIO | bytes, workspace: str = "") -> CSAR:
        """Submit a Cloud Service ARchive to the catalog.

        The archive is a zip holding a single TOSCA definition at its root.
        Workspaces are a premium feature; leave empty for the default one.

        Args:
            archive: Archive content or a binary file object
            workspace: Target workspace

        Returns:
            The registered archive

        Raises:
            ContentError: If the server reported parsing problems. Problems may be
                warnings only; check ``has_critical_errors()``. The archive is
                available as ``ContentError.csar``.
            RemoteError: If the upload request fails
        """
        content = archive if isinstance(archive, bytes) else archive.read()
        params = {"workspace": workspace} if workspace else None
        res = await self._rest.request(
            "POST",
            "/csars",
            params=params,
            files={"file": ("types.zip", content, "application/zip")},
            context="Cannot upload CSAR",
        )
        data = (res or {}).get("data") or {}
        csar = decode_model(CSAR, data.get("csar") or {})
        errors = data.get("errors") or {}
        if errors:
            parsing_errors = {
                file_name: [decode_model(ParsingError, p) for p in problems]
                for file_name, problems in errors.items()
            }
            raise ContentError(csar, parsing_errors)
        _logger.info("Uploaded CSAR %s:%s", csar.name, csar.version)
        return csar


__all__ = ["Catalog"]
