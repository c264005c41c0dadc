from __future__ import annotations

import json
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Iterable, List, Optional

from ..errors import PlanLoaderError
from ..normalization import check_plan_document

logger = logging.getLogger(__name__)

DEFAULT_PLAN_FILENAME = "plan.tfplan"


class PlanLoader:
    """Load Terraform plan data from supplied artifacts or by executing Terraform."""

    def __init__(
        self,
        working_dir: str | os.PathLike[str] = ".",
        *,
        plan_json_path: str | os.PathLike[str] | None = None,
        plan_file_path: str | os.PathLike[str] | None = None,
        var_files: Optional[Iterable[str | os.PathLike[str]]] = None,
        env: Optional[dict[str, str]] = None,
        inherit_environment: bool = False,
        terraform_bin: str = "terraform",
        plan_filename: str = DEFAULT_PLAN_FILENAME,
    ) -> None:
        self.working_dir = Path(working_dir).resolve()
        self.plan_json_path = Path(plan_json_path).resolve() if plan_json_path else None
        self.plan_file_path = Path(plan_file_path).resolve() if plan_file_path else None
        self.var_files = [str(Path(path).resolve()) for path in var_files] if var_files else []
        self.env = env or {}
        self.inherit_environment = inherit_environment
        self.terraform_bin = terraform_bin
        self.plan_filename = plan_filename

    def load_plan(self) -> dict[str, Any]:
        """Load plan data from an artifact or by executing Terraform.

        The returned document is guaranteed to be a mapping holding a
        ``resource_changes`` list.
        """

        if self.plan_json_path:
            plan = self._load_json_artifact(self.plan_json_path)
        elif self.plan_file_path:
            plan = self._load_plan_file(self.plan_file_path)
        else:
            plan = self._generate_plan_from_source()

        return dict(check_plan_document(plan))

    # Artifact ingestion helpers -------------------------------------------------
    def _load_json_artifact(self, path: Path) -> Any:
        if not path.exists():
            raise PlanLoaderError(f"Terraform plan JSON artifact not found: {path}")

        logger.info("Reading plan JSON artifact %s", path)
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except json.JSONDecodeError as exc:
            raise PlanLoaderError(f"Invalid JSON in plan artifact: {path}") from exc
        except UnicodeDecodeError as exc:
            raise PlanLoaderError(f"Plan artifact is not valid UTF-8: {path}") from exc
        except OSError as exc:
            raise PlanLoaderError(f"Failed to read plan artifact {path}: {exc}") from exc

    def _load_plan_file(self, path: Path) -> Any:
        if not path.exists():
            raise PlanLoaderError(f"Terraform plan file not found: {path}")

        completed = self._run_command(
            [self.terraform_bin, "show", "-json", str(path)],
            cwd=self.working_dir,
            env=self._build_environment(),
            capture_output=True,
        )
        return self._parse_command_output(completed.stdout)

    # Terraform execution --------------------------------------------------------
    def _generate_plan_from_source(self) -> Any:
        env = self._build_environment()
        module_dir = self.working_dir
        if not module_dir.is_dir():
            raise PlanLoaderError(f"Terraform working directory not found: {module_dir}")

        # Local-only init: no backend, so no remote state or credentials are needed.
        self._run_command(
            [self.terraform_bin, "init", "-backend=false", "-input=false"],
            cwd=module_dir,
            env=env,
        )

        plan_cmd = [
            self.terraform_bin,
            "plan",
            f"-out={self.plan_filename}",
            "-input=false",
            "-lock=false",
            "-refresh=false",
        ]
        for var_file in self.var_files:
            plan_cmd.append(f"-var-file={var_file}")
        self._run_command(plan_cmd, cwd=module_dir, env=env)

        show_cmd = [self.terraform_bin, "show", "-json", self.plan_filename]
        completed = self._run_command(show_cmd, cwd=module_dir, env=env, capture_output=True)

        return self._parse_command_output(completed.stdout)

    def _build_environment(self) -> dict[str, str]:
        if self.inherit_environment:
            env_vars = os.environ.copy()
        else:
            env_vars = {"PATH": os.environ.get("PATH", "")}

        env_vars.setdefault("TF_IN_AUTOMATION", "1")
        env_vars.update(self.env)
        return env_vars

    def _parse_command_output(self, output: str) -> Any:
        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            raise PlanLoaderError("Command output was not valid JSON") from exc

    # Command runner -------------------------------------------------------------
    def _run_command(
        self,
        args: List[str],
        *,
        cwd: Path | None = None,
        env: Optional[dict[str, str]] = None,
        capture_output: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        logger.info("Running %s", " ".join(args))
        try:
            completed = subprocess.run(
                args,
                cwd=cwd,
                env=env,
                check=True,
                capture_output=capture_output,
                text=True,
            )
        except FileNotFoundError as exc:
            raise PlanLoaderError(f"Executable not found: {args[0]}") from exc
        except subprocess.CalledProcessError as exc:
            message = f"Command '{' '.join(args)}' failed with exit code {exc.returncode}"
            stderr = (exc.stderr or "").strip()
            if stderr:
                message = f"{message}: {stderr}"
            raise PlanLoaderError(message) from exc
        except UnicodeDecodeError as exc:
            raise PlanLoaderError(
                f"Command '{' '.join(args)}' produced output that is not valid UTF-8"
            ) from exc

        return completed


__all__ = ["DEFAULT_PLAN_FILENAME", "PlanLoader", "PlanLoaderError"]
