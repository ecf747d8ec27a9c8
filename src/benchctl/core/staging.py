# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Local staging of the domain controller.

stage_controller() unpacks the server distribution into the controller
directory and renders the controller configuration with the database
coordinates.
"""

import logging
import tarfile
from pathlib import Path, PurePosixPath

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from .errors import StagingFailed
from .schema import DatabaseConfig

logger = logging.getLogger(__name__)

# Placeholders used by plain (non-Jinja) domain.xml templates
LEGACY_PLACEHOLDERS = {
    "db-address-to-be-replaced": "db_address",
    "db-name-to-be-replaced": "db_name",
    "db-user-to-be-replaced": "db_user",
    "db-password-to-be-replaced": "db_password",
}


def _strip_first_component(members: list[tarfile.TarInfo]) -> list[tarfile.TarInfo]:
    """Equivalent of `tar --strip-components=1`."""
    stripped = []
    for member in members:
        parts = PurePosixPath(member.name).parts
        if len(parts) <= 1:
            continue
        member.name = str(PurePosixPath(*parts[1:]))
        if member.islnk():
            link_parts = PurePosixPath(member.linkname).parts
            member.linkname = str(PurePosixPath(*link_parts[1:]))
        stripped.append(member)
    return stripped


def extract_distribution(archive: Path, directory: Path) -> None:
    """Unpack a .tar.gz distribution into directory without its top-level folder."""
    logger.info("Extracting %s into %s", archive, directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        with tarfile.open(archive, "r:*") as tar:
            tar.extractall(directory, members=_strip_first_component(tar.getmembers()), filter="data")
    except (OSError, tarfile.TarError) as e:
        raise StagingFailed(f"Could not extract {archive}: {e}") from e


def render_controller_config(template: Path, database: DatabaseConfig, db_address: str) -> str:
    """Render the controller configuration template.

    The template may use Jinja2 variables (db_address, db_name, db_user,
    db_password) or the legacy `db-*-to-be-replaced` placeholders.
    """
    values = {
        "db_address": db_address,
        "db_name": database.name,
        "db_user": database.user,
        "db_password": database.password,
    }

    env = Environment(
        loader=FileSystemLoader(str(template.parent)),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    try:
        rendered = env.get_template(template.name).render(**values)
    except TemplateError as e:
        raise StagingFailed(f"Could not render {template}: {e}") from e

    for placeholder, key in LEGACY_PLACEHOLDERS.items():
        rendered = rendered.replace(placeholder, values[key])
    return rendered


def stage_controller(
    distribution: Path,
    directory: Path,
    template: Path,
    database: DatabaseConfig,
    db_address: str,
) -> Path:
    """Prepare the local domain controller.

    Returns:
        Path of the written controller configuration
    """
    if directory.exists() and any(directory.iterdir()):
        logger.warning("Controller directory %s is not empty, files will be overwritten", directory)

    extract_distribution(distribution, directory)

    config_path = directory / "domain" / "configuration" / "domain.xml"
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(render_controller_config(template, database, db_address))
    except OSError as e:
        raise StagingFailed(f"Could not write {config_path}: {e}") from e

    logger.info("Controller configuration written to %s", config_path)
    return config_path
