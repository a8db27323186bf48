"""ArgoCD ApplicationSet parsing and expansion into component paths."""

from __future__ import annotations

import copy
import itertools
import re
from dataclasses import dataclass, field
from typing import Any, TypedDict

import yaml
from loguru import logger

from renderdiff.kustomize import normalize
from renderdiff.models import ComponentPath

Params = dict[str, Any]


class ArgoMetadata(TypedDict, total=False):
    name: str
    namespace: str


class ArgoSource(TypedDict, total=False):
    """ArgoCD Application source configuration."""

    repoURL: str
    targetRevision: str
    path: str
    ref: str


class ArgoApplicationSetTemplateSpec(TypedDict, total=False):
    source: ArgoSource
    sources: list[ArgoSource]


class ArgoApplicationSetTemplate(TypedDict, total=False):
    metadata: dict[str, Any]
    spec: ArgoApplicationSetTemplateSpec


class ArgoApplicationSetSpec(TypedDict, total=False):
    goTemplate: bool
    generators: list[dict[str, Any]]
    template: ArgoApplicationSetTemplate


class ArgoApplicationSetDocument(TypedDict, total=False):
    """Complete ArgoCD ApplicationSet document."""

    apiVersion: str
    kind: str
    metadata: ArgoMetadata
    spec: ArgoApplicationSetSpec


@dataclass
class ArgoAppSetConfig:
    """Parsed ArgoCD ApplicationSet configuration."""

    name: str
    generators: list[dict[str, Any]]
    source_paths: list[str]
    """Template source paths, still containing template variables."""
    param_sets: list[Params] = field(default_factory=list)
    """Parameter sets produced by the generators."""

    def __repr__(self) -> str:
        return f"ArgoAppSetConfig(name={self.name}, params={len(self.param_sets)})"

    def component_paths(self) -> list[ComponentPath]:
        """Resolve every template source path against every parameter set."""
        paths: list[ComponentPath] = []
        for params in self.param_sets:
            cluster_dir: str = str(lookup(params, "values.clusterDir") or "")
            for template_path in self.source_paths:
                resolved: str = resolve_template_variables(template_path, params)
                if "{{" in resolved:
                    logger.debug(
                        "Skipping unresolved path {} in ApplicationSet {}",
                        resolved,
                        self.name,
                    )
                    continue
                rel: str = normalize(resolved)
                if not rel or rel.startswith(".."):
                    continue
                paths.append(ComponentPath(path=rel, cluster_dir=cluster_dir))
        return paths


def extract_applicationsets(rendered_content: str | bytes) -> list[ArgoAppSetConfig]:
    """Parse every ApplicationSet in a rendered overlay.

    Raises:
        yaml.YAMLError: if the rendered content is not valid YAML
    """
    appsets: list[ArgoAppSetConfig] = []
    for doc in yaml.safe_load_all(rendered_content):
        if not doc or not isinstance(doc, dict) or doc.get("kind") != "ApplicationSet":
            continue
        appsets.append(parse_applicationset(doc))
    return appsets


def parse_applicationset(doc: ArgoApplicationSetDocument) -> ArgoAppSetConfig:
    metadata: ArgoMetadata = doc.get("metadata") or {}
    spec: ArgoApplicationSetSpec = doc.get("spec") or {}
    generators: list[dict[str, Any]] = spec.get("generators") or []

    template: ArgoApplicationSetTemplate = spec.get("template") or {}
    template_spec: ArgoApplicationSetTemplateSpec = template.get("spec") or {}

    sources: list[ArgoSource] = list(template_spec.get("sources") or [])
    source: ArgoSource | None = template_spec.get("source")
    if source and not sources:
        sources = [source]

    source_paths: list[str] = [
        src["path"] for src in sources if src.get("path") and not src.get("ref")
    ]

    name: str = metadata.get("name", "")
    param_sets: list[Params] = []
    for gen in generators:
        param_sets.extend(expand_generator(gen, name))

    return ArgoAppSetConfig(
        name=name,
        generators=generators,
        source_paths=source_paths,
        param_sets=param_sets,
    )


def expand_generator(gen: dict[str, Any], appset_name: str = "") -> list[Params]:
    """Expand a single generator into parameter sets.

    Supports list, clusters, merge and matrix generators. The clusters
    generator cannot enumerate real clusters offline, so it yields a single
    parameter set carrying its static values.
    """
    if "list" in gen:
        elements: list[dict[str, Any]] = (gen["list"] or {}).get("elements") or []
        return [expand_dotted(elem) for elem in elements if isinstance(elem, dict)]

    if "clusters" in gen:
        values: dict[str, Any] = (gen["clusters"] or {}).get("values") or {}
        return [{"values": copy.deepcopy(values)}]

    if "merge" in gen:
        return _expand_merge(gen["merge"] or {}, appset_name)

    if "matrix" in gen:
        return _expand_matrix(gen["matrix"] or {}, appset_name)

    logger.debug(
        "Ignoring unsupported generator {} in ApplicationSet {}",
        ", ".join(gen.keys()),
        appset_name,
    )
    return []


def _expand_merge(merge: dict[str, Any], appset_name: str) -> list[Params]:
    """Expand a merge generator.

    The first generator provides the base parameter sets. Each element of the
    following generators overrides a copy of the base sets, and the
    unmodified base sets are kept as well (clusters without an override).
    """
    children: list[dict[str, Any]] = merge.get("generators") or []
    if not children:
        return []

    base_sets: list[Params] = expand_generator(children[0], appset_name)
    merged: list[Params] = list(base_sets)

    for child in children[1:]:
        for override in expand_generator(child, appset_name):
            for base in base_sets:
                merged.append(deep_merge(base, override))
    return merged


def _expand_matrix(matrix: dict[str, Any], appset_name: str) -> list[Params]:
    children: list[dict[str, Any]] = matrix.get("generators") or []
    if len(children) != 2:
        logger.debug(
            "Matrix generator in {} needs exactly two generators, got {}",
            appset_name,
            len(children),
        )
        return []

    left: list[Params] = expand_generator(children[0], appset_name)
    right: list[Params] = expand_generator(children[1], appset_name)
    return [deep_merge(a, b) for a, b in itertools.product(left, right)]


def expand_dotted(element: dict[str, Any]) -> Params:
    """Turn keys like 'values.clusterDir' into nested dictionaries."""
    result: Params = {}
    for key, value in element.items():
        parts: list[str] = str(key).split(".")
        target: Params = result
        for part in parts[:-1]:
            nested: Any = target.get(part)
            if not isinstance(nested, dict):
                nested = {}
                target[part] = nested
            target = nested
        target[parts[-1]] = copy.deepcopy(value)
    return result


def deep_merge(base: Params, override: Params) -> Params:
    merged: Params = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def lookup(params: Params, dotted: str) -> Any:
    """Look up a dotted name such as 'values.sourceRoot' in a parameter set."""
    if dotted in params:
        return params[dotted]

    current: Any = params
    for part in dotted.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def resolve_template_variables(template_str: str, variables: Params) -> str:
    """Resolve ApplicationSet template variables in a string.

    Handles both fasttemplate ({{values.name}}) and goTemplate
    ({{.values.name}}) references. Unknown variables are left untouched.
    """

    def replace_var(match: re.Match[str]) -> str:
        var_name: str = match.group(1).strip().lstrip(".")
        value: Any = lookup(variables, var_name)
        if value is None or isinstance(value, (dict, list)):
            return match.group(0)
        return str(value)

    return re.sub(r"\{\{(.+?)\}\}", replace_var, template_str)
