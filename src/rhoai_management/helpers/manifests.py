"""Rendering of the YAML manifests shipped with the package."""

import logging
from pathlib import Path

from lightkube import codecs

# Registers the generic kinds the templates describe with the codecs
from rhoai_management.helpers import resources  # noqa: F401

log = logging.getLogger(__name__)

MANIFESTS_PATH = Path(__file__).resolve().parent.parent / "manifests"


def render_manifest(template: str, **context) -> codecs.AnyResource:
    """Load a single object from a manifest template.

    Args:
        template: The file name of the template, relative to the manifests directory.
        context: jinja context to substitute in the template.

    Returns:
        The lightkube resource described by the template.

    Raises:
        ValueError: If the template doesn't hold exactly one object.
    """
    resources = codecs.load_all_yaml((MANIFESTS_PATH / template).read_text(), context)
    if len(resources) != 1:
        raise ValueError(
            "Expected a single object in %s, found %d" % (template, len(resources))
        )

    log.debug("Rendered %s", template)
    return resources[0]
