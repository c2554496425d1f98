"""
Artifact Store
Loads deployment artifacts (factory address + calldata) from contracts/deployement-data
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from loguru import logger

from utils.errors import DeploymentError, configuration_error, format_error, validation_error

from .models import DeploymentArtifact, DeploymentResult
from .ordering import DeploymentOrder


@dataclass
class LoadedArtifacts:
    """Artifacts ready for the orchestrator plus the ones rejected at load time"""

    artifacts: List[DeploymentArtifact] = field(default_factory=list)
    rejected: List[DeploymentResult] = field(default_factory=list)

    def extend(self, other: 'LoadedArtifacts') -> None:
        self.artifacts.extend(other.artifacts)
        self.rejected.extend(other.rejected)

    def __len__(self) -> int:
        return len(self.artifacts) + len(self.rejected)


class ArtifactStore:
    """
    Reads artifact JSON files from a directory tree

    Layouts:
    - flat:   <dir>/<name>.json, one artifact per file
    - nested: <dir>/<module>/<version>.json, artifact named <module>-<version>
    """

    def __init__(self, root: Union[str, Path]):
        """
        Initialize Artifact Store

        Args:
            root: Base directory for deployment data
        """
        self.root = Path(root)

    def target_directory(self, target_config: Dict) -> Path:
        return self.root / target_config['directory']

    def load_target(self, target_name: str, target_config: Dict) -> LoadedArtifacts:
        """
        Load every artifact of a deploy target, ordered by its table

        Args:
            target_name: Target key, e.g. "1.4.1"
            target_config: {"directory", "layout", "order"}

        Returns:
            LoadedArtifacts

        Raises:
            DeploymentError: CONFIGURATION if the directory does not exist
        """
        directory = self.target_directory(target_config)

        if not directory.is_dir():
            raise configuration_error(f"Directory not found: {directory}")

        order = DeploymentOrder.from_target_config(target_config)
        layout = target_config.get('layout', 'flat')

        if layout == 'flat':
            entries = self._flat_entries(directory, order)
        elif layout == 'nested':
            entries = self._nested_entries(directory, order)
        else:
            raise configuration_error(f"Unknown artifact layout '{layout}' for target {target_name}")

        loaded = LoadedArtifacts()
        for name, path in entries:
            self._load_into(loaded, name, path, target_name)

        logger.info(
            f"Target {target_name}: {len(loaded.artifacts)} artifact(s) loaded, "
            f"{len(loaded.rejected)} rejected from {directory}"
        )

        return loaded

    def load_file(self, path: Union[str, Path], target: Optional[str] = None) -> DeploymentArtifact:
        """
        Load a single artifact file

        Raises:
            DeploymentError: VALIDATION for malformed content
        """
        path = Path(path)
        if not path.is_file():
            raise configuration_error(f"Deployment data file not found: {path}")

        return DeploymentArtifact.from_json(
            path.stem,
            self._read_json(path),
            target=target,
            source_path=str(path),
        )

    def _flat_entries(self, directory: Path, order: DeploymentOrder) -> List[Tuple[str, Path]]:
        files = [(p.stem, p) for p in directory.glob('*.json') if p.is_file()]
        return order.sort_items(files, key=lambda entry: entry[0])

    def _nested_entries(self, directory: Path, order: DeploymentOrder) -> List[Tuple[str, Path]]:
        entries = []
        module_dirs = [p for p in directory.iterdir() if p.is_dir()]

        for module_dir in order.sort_items(module_dirs, key=lambda p: p.name):
            json_files = sorted(module_dir.glob('*.json'))

            if not json_files:
                logger.warning(f"⚠ No JSON files found in {module_dir}")
                continue

            if len(json_files) > 1:
                logger.warning(
                    f"⚠ {module_dir.name} has {len(json_files)} versions, using {json_files[0].name}"
                )

            version_file = json_files[0]
            entries.append((f"{module_dir.name}-{version_file.stem}", version_file))

        return entries

    def _load_into(self, loaded: LoadedArtifacts, name: str, path: Path, target: str) -> None:
        try:
            artifact = DeploymentArtifact.from_json(
                name,
                self._read_json(path),
                target=target,
                source_path=str(path),
            )
            artifact.validate()
        except DeploymentError as e:
            logger.error(f"✗ Invalid deployment data in {name}: {e.message}")
            loaded.rejected.append(
                DeploymentResult.failure(name, format_error(e), target=target)
            )
            return

        loaded.artifacts.append(artifact)
        logger.debug(f"Loaded {name}: factory {artifact.factory_address}")

    @staticmethod
    def _read_json(path: Path):
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise validation_error(f"Could not parse {path.name}: {e}", field='json', cause=e)
