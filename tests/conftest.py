"""Shared fixtures: a miniature monorepo with a module config."""

import copy
import json
from datetime import datetime, timezone

import pytest

from archtrace.config import DEFAULT_CONFIG
from archtrace.core.module_config import load_module_config
from archtrace.core.store import TraceProject

GENERATED_AT = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

CORE_INDEX = """\
/* Shared primitives. */
export interface User {
  id: string;
}
export function createUser(id: string): User {
  return { id };
}
export const DEFAULT_ROLE = "viewer";
"""

CORE_UTIL = """\
import * as path from 'path';

export type Id = string;
export default function normalize(p: string) {
  return path.normalize(p);
}
"""

WEB_MAIN = """\
import React, { useState } from 'react';
import { createUser } from '@acme/core';
import './styles.css';

export class App {}
"""

BUILD_SCRIPT = """\
const fs = require('fs');
module.exports = function build() {};
"""

MODULES = {
    "version": 1,
    "projectRoot": ".",
    "modules": [
        {
            "id": "core",
            "name": "Core",
            "description": "Shared domain primitives",
            "fileGlobs": ["packages/core/**"],
        },
        {
            "id": "web",
            "name": "Web",
            "description": "Customer-facing web app",
            "fileGlobs": ["apps/web/**"],
        },
        {
            "id": "scripts",
            "name": "Scripts",
            "description": "Repository tooling",
            "fileGlobs": ["scripts/**"],
        },
    ],
}


def write(root, rel_path, content):
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def settings():
    """A private copy of the default settings."""
    return copy.deepcopy(DEFAULT_CONFIG)


@pytest.fixture
def repo(tmp_path):
    """Source tree with three modules and no traces yet."""
    write(tmp_path, "packages/core/src/index.ts", CORE_INDEX)
    write(tmp_path, "packages/core/src/util.ts", CORE_UTIL)
    write(tmp_path, "packages/core/package.json", '{"name": "@acme/core"}\n')
    write(tmp_path, "apps/web/src/main.tsx", WEB_MAIN)
    write(tmp_path, "scripts/build.js", BUILD_SCRIPT)
    write(tmp_path, "README.md", "# Acme\n")
    return tmp_path


@pytest.fixture
def project(repo, settings):
    """TraceProject for the repo, with the module config in place."""
    project = TraceProject(root=repo, settings=settings)
    project.trace_dir.mkdir(parents=True, exist_ok=True)
    project.module_config_path.write_text(json.dumps(MODULES, indent=2), encoding="utf-8")
    return project


@pytest.fixture
def module_config(project):
    return load_module_config(project)


@pytest.fixture
def generated(project, module_config):
    """Project with every trace generated at GENERATED_AT."""
    from archtrace.core.generator import TraceGenerator

    TraceGenerator(project, module_config).generate_all(now=GENERATED_AT)
    return project
