"""Load extraction parameters from TOML (e.g. causalgraph.toml).

Config file is looked up in order:
  1. Path in CAUSALGRAPH_CONFIG env var (if set)
  2. causalgraph.toml in the directory containing the causalgraph package
  3. causalgraph.toml in the current working directory

The first readable file wins. Its `[graph]` table overrides `GraphParams`
defaults and its `[hierarchy]` table overrides `HierarchyParams` defaults.
Unknown keys are ignored; values of the wrong type or range raise a
pydantic `ValidationError`. If no file is found, built-in defaults are used.

CAUSALGRAPH_DM_SPEAKER, a comma-separated list of author names, replaces
`graph.dm_speakers` whichever source the rest of the parameters came from.

Example::

    [graph]
    max_back = 10
    top_k = 2

    [hierarchy]
    max_round = 2
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

from causalgraph.actors import parse_dm_speakers
from causalgraph.logging import setup_logging
from causalschema.params import GraphParams, HierarchyParams

CONFIG_ENV_VAR = "CAUSALGRAPH_CONFIG"
CONFIG_FILENAME = "causalgraph.toml"
DM_SPEAKER_ENV_VAR = "CAUSALGRAPH_DM_SPEAKER"

logger = setup_logging()


class CausalConfig(BaseModel, frozen=True):
    graph: GraphParams = GraphParams()
    hierarchy: HierarchyParams = HierarchyParams()
    source: Optional[str] = None


def _default_config_paths() -> list[Path]:
    """Return paths to check for causalgraph.toml (first existing wins)."""
    paths: list[Path] = []
    if os.environ.get(CONFIG_ENV_VAR):
        paths.append(Path(os.environ[CONFIG_ENV_VAR]))
    # .../causalgraph/config.py -> directory holding the package
    paths.append(Path(__file__).resolve().parent.parent / CONFIG_FILENAME)
    paths.append(Path.cwd() / CONFIG_FILENAME)
    return paths


def _known_keys(table: Any, model: type[BaseModel]) -> dict[str, Any]:
    if not isinstance(table, dict):
        return {}
    known = {k: v for k, v in table.items() if k in model.model_fields}
    if "dm_speakers" in known and isinstance(known["dm_speakers"], list):
        known["dm_speakers"] = tuple(known["dm_speakers"])
    return known


def load_causal_config(paths: Optional[list[Path]] = None) -> CausalConfig:
    """Load extraction parameters from the first readable TOML file.

    Args:
        paths: Candidate files to try in order. Defaults to the env var,
            package directory and working directory lookup.

    Returns:
        A CausalConfig whose `source` is the file used, or None when the
        built-in defaults apply.
    """
    config = CausalConfig()
    for path in paths if paths is not None else _default_config_paths():
        if not path.is_file():
            continue
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, ValueError):
            logger.warning({"message": "Skipping unreadable config file", "path": str(path)})
            continue
        config = CausalConfig(
            graph=GraphParams(**_known_keys(data.get("graph"), GraphParams)),
            hierarchy=HierarchyParams(**_known_keys(data.get("hierarchy"), HierarchyParams)),
            source=str(path),
        )
        logger.debug({"message": "Loaded causal config", "path": str(path)})
        break
    return _apply_dm_speaker_override(config)


def _apply_dm_speaker_override(config: CausalConfig) -> CausalConfig:
    """Replace `graph.dm_speakers` with the names in CAUSALGRAPH_DM_SPEAKER.

    The override lands in the parameters, so it is part of the snapshot
    parameter hash like any other setting.
    """
    names = parse_dm_speakers(os.environ.get(DM_SPEAKER_ENV_VAR, ""))
    if not names:
        return config
    logger.debug({"message": "DM speaker override from environment", "dm_speakers": names})
    graph = config.graph.model_copy(update={"dm_speakers": names})
    return config.model_copy(update={"graph": graph})
