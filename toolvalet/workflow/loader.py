"""
toolvalet Workflow Loader - Load and validate workflow definitions from YAML

This module handles:
1. Loading workflow definitions from YAML files, directories or dicts
2. Validating workflow structure and step references
3. Keeping the loaded definitions in a WorkflowRegistry

File format:

    workflows:
      deal-summary:
        description: Summarize a CRM deal into a Google Doc
        output: create-document
        steps:
          - name: fetch-deal
            tool: crm_deals
            arguments:
              deal_id: "{{input.deal_id}}"
            output: deal
          - name: fetch-stakeholders
            tool: crm_deal_stakeholders
            critical: false
            arguments:
              deal_id: "{{input.deal_id}}"
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

import yaml

from ..tools.registry import ToolRegistry
from .models import WorkflowDefinition, WorkflowStepSpec
from .resolver import ArgumentResolver

logger = logging.getLogger(__name__)

STEP_KEYS = {"name", "tool", "arguments", "critical", "output"}


class WorkflowLoadError(Exception):
    """Raised when a workflow file cannot be read or parsed"""
    pass


class WorkflowValidationError(Exception):
    """Raised when a workflow fails validation"""
    pass


class UnknownWorkflowError(KeyError):
    """Raised when running a workflow name nobody registered"""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown workflow '{self.name}'"


class WorkflowRegistry:
    """
    Maps workflow name -> WorkflowDefinition.

    Example:
        workflows = WorkflowRegistry()
        workflows.register(DEAL_SUMMARY_WORKFLOW)
        definition = workflows.get("deal-summary")
    """

    def __init__(self):
        self._workflows: Dict[str, WorkflowDefinition] = {}

    def register(self, definition: WorkflowDefinition, replace: bool = False) -> None:
        errors = definition.validate()
        if errors:
            raise WorkflowValidationError("; ".join(errors))
        if definition.name in self._workflows and not replace:
            raise WorkflowValidationError(f"Workflow '{definition.name}' is already registered")
        self._workflows[definition.name] = definition
        logger.info(f"Registered workflow: {definition.name} ({len(definition.steps)} steps)")

    def get(self, name: str) -> WorkflowDefinition:
        """
        Raises:
            UnknownWorkflowError: No workflow with that name
        """
        try:
            return self._workflows[name]
        except KeyError:
            raise UnknownWorkflowError(name) from None

    def find(self, name: str) -> Optional[WorkflowDefinition]:
        return self._workflows.get(name)

    def names(self) -> List[str]:
        return list(self._workflows.keys())

    def __len__(self) -> int:
        return len(self._workflows)

    def __contains__(self, name: object) -> bool:
        return name in self._workflows

    def __iter__(self) -> Iterator[WorkflowDefinition]:
        return iter(self._workflows.values())


class WorkflowLoader:
    """
    Loads workflow definitions from YAML configuration.

    When a ToolRegistry is supplied every step must name a registered
    tool.

    Example usage:
        loader = WorkflowLoader(tools=registry)
        loader.load_from_file("workflows.yaml")
        loader.load_from_directory("config/workflows/")

        definition = loader.workflows.get("deal-summary")
    """

    def __init__(
        self,
        tools: Optional[ToolRegistry] = None,
        workflows: Optional[WorkflowRegistry] = None,
    ):
        self.tools = tools
        self.workflows = workflows if workflows is not None else WorkflowRegistry()
        self._resolver = ArgumentResolver()

    def load_from_file(self, file_path: Union[str, Path]) -> List[WorkflowDefinition]:
        """
        Load workflows from a YAML file.

        Raises:
            WorkflowLoadError: If file cannot be read or parsed
            WorkflowValidationError: If a workflow definition is invalid
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise WorkflowLoadError(f"Workflow file not found: {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise WorkflowLoadError(f"Invalid YAML in {file_path}: {e}")

        if not data:
            return []
        if not isinstance(data, Mapping):
            raise WorkflowLoadError(f"Expected a mapping at the top of {file_path}")

        return self.load_from_dict(data, source=str(file_path))

    def load_from_directory(self, dir_path: Union[str, Path]) -> List[WorkflowDefinition]:
        """Load every .yaml / .yml file in a directory, in name order."""
        dir_path = Path(dir_path)

        if not dir_path.exists():
            raise WorkflowLoadError(f"Workflow directory not found: {dir_path}")

        if not dir_path.is_dir():
            raise WorkflowLoadError(f"Not a directory: {dir_path}")

        definitions = []
        for file_path in sorted(dir_path.glob("*.yaml")) + sorted(dir_path.glob("*.yml")):
            definitions.extend(self.load_from_file(file_path))
        return definitions

    def load_path(self, path: Union[str, Path]) -> List[WorkflowDefinition]:
        """File or directory, whichever ``path`` is."""
        path = Path(path)
        if path.is_dir():
            return self.load_from_directory(path)
        return self.load_from_file(path)

    def load_from_dict(
        self,
        data: Mapping[str, Any],
        source: str = "<dict>",
    ) -> List[WorkflowDefinition]:
        """
        Load workflows from a dictionary with a 'workflows' key.

        Raises:
            WorkflowValidationError: If a workflow definition is invalid
        """
        workflows_data = data.get("workflows") or {}
        if not isinstance(workflows_data, Mapping):
            raise WorkflowValidationError(f"'workflows' in {source} must be a mapping")

        loaded = []
        for name, workflow_data in workflows_data.items():
            if name in self.workflows:
                raise WorkflowValidationError(f"Workflow '{name}' from {source} is already defined")
            try:
                definition = self.parse_workflow(name, workflow_data)
            except (TypeError, ValueError) as e:
                raise WorkflowValidationError(f"Error loading workflow '{name}' from {source}: {e}")
            self.workflows.register(definition)
            loaded.append(definition)

        logger.info(f"Loaded {len(loaded)} workflows from {source}")
        return loaded

    def parse_workflow(self, name: str, data: Mapping[str, Any]) -> WorkflowDefinition:
        """Parse and validate one workflow definition."""
        if not isinstance(data, Mapping):
            raise WorkflowValidationError(f"Workflow '{name}' must be a mapping")

        steps_data = data.get("steps") or []
        if not isinstance(steps_data, list):
            raise WorkflowValidationError(f"Workflow '{name}' steps must be a list")

        output = data.get("output")
        if output is not None and not isinstance(output, str):
            raise WorkflowValidationError(f"Workflow '{name}' output must be a step name")

        definition = WorkflowDefinition(
            name=name,
            description=data.get("description", ""),
            steps=tuple(self._parse_step(name, i, step) for i, step in enumerate(steps_data)),
            output=output,
        )

        errors = definition.validate() + self._reference_errors(definition)
        if errors:
            raise WorkflowValidationError(
                f"Workflow '{name}' validation failed: {'; '.join(errors)}"
            )
        return definition

    def _parse_step(self, workflow: str, index: int, data: Any) -> WorkflowStepSpec:
        if not isinstance(data, Mapping):
            raise WorkflowValidationError(f"Workflow '{workflow}' step {index} must be a mapping")

        unknown = set(data) - STEP_KEYS
        if unknown:
            raise WorkflowValidationError(
                f"Workflow '{workflow}' step {index} has unknown keys: {', '.join(sorted(unknown))}"
            )

        critical = data.get("critical", True)
        if not isinstance(critical, bool):
            raise WorkflowValidationError(f"Workflow '{workflow}' step {index}: 'critical' must be true or false")

        arguments = data.get("arguments") or {}
        if not isinstance(arguments, Mapping):
            raise WorkflowValidationError(f"Workflow '{workflow}' step {index}: 'arguments' must be a mapping")

        output = data.get("output")
        if output is not None and not isinstance(output, str):
            raise WorkflowValidationError(f"Workflow '{workflow}' step {index}: 'output' must be a string")

        return WorkflowStepSpec(
            name=str(data.get("name") or ""),
            tool=str(data.get("tool") or ""),
            arguments=dict(arguments),
            critical=critical,
            output=output,
        )

    def _reference_errors(self, definition: WorkflowDefinition) -> List[str]:
        errors = []
        earlier: List[str] = []
        for step in definition.steps:
            if self.tools is not None and step.tool not in self.tools:
                errors.append(f"Step '{step.name}' uses unknown tool '{step.tool}'")

            for reference in sorted(self._resolver.references(step.arguments)):
                parts = reference.split(".")
                if parts[0] == "input":
                    continue
                if parts[0] != "steps" or len(parts) < 2:
                    errors.append(f"Step '{step.name}' has an invalid reference '{reference}'")
                elif parts[1] not in earlier:
                    errors.append(f"Step '{step.name}' references '{parts[1]}', which does not run before it")
            earlier.append(step.name)
        return errors
