"""Component wiring and startup checks shared by every transport.

Architectural role:
    The entry point owns exactly one `CredentialStore` and one `OutputStore`
    and injects them into `ImageGenerationService` and `ToolRouter`. No module
    keeps a global instance.

Startup sequence (`prepare_environment`):
    1. Load credentials and log the configuration status.
    2. Check the output directory is accessible.
    3. Probe writability.
    4. Prune old artifacts down to the retention count.

Error handling strategy:
    Startup problems are logged as warnings and never abort the server; the
    first failing tool call reports them to the user instead.
"""

import logging
from dataclasses import dataclass

from imagegen.api.router import ToolRouter
from imagegen.config import settings
from imagegen.config.credential_store import CredentialStore
from imagegen.core.errors import ImageToolError
from imagegen.image.service import ImageGenerationService
from imagegen.storage.output_store import OutputStore


logger = logging.getLogger(__name__)


@dataclass
class Components:
    credentials: CredentialStore
    outputs: OutputStore
    generator: ImageGenerationService
    router: ToolRouter


def build_components(config_path=None, output_dir=None, client_factory=None) -> Components:
    credentials = CredentialStore(path=config_path)
    outputs = OutputStore(output_dir=output_dir)
    if client_factory is None:
        generator = ImageGenerationService(credentials, outputs)
    else:
        generator = ImageGenerationService(credentials, outputs, client_factory=client_factory)
    router = ToolRouter(credentials, generator)
    return Components(credentials, outputs, generator, router)


def prepare_environment(components: Components, keep_count=None) -> None:
    if keep_count is None:
        keep_count = settings.KEEP_IMAGES

    try:
        status = components.credentials.status()
        logger.info(
            "Configuration: configured=%s model=%s organization=%s last_used=%s",
            status.configured, status.model,
            status.organization or "none", status.last_used_at or "never",
        )
    except ImageToolError as e:
        logger.warning("Configuration could not be loaded: %s", e.message)

    outputs = components.outputs
    try:
        outputs.ensure_accessible()
    except ImageToolError as e:
        logger.warning("Output directory warning: %s", e.message)
        return

    if not outputs.check_writable():
        logger.warning("Generated images may fail to save in %s", outputs.output_dir)

    outputs.prune(keep_count)
