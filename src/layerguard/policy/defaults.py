"""Built-in default policy for the ``app -> modules -> core -> shared`` layout."""

from __future__ import annotations

from typing import TYPE_CHECKING

from layerguard.policy.loader import parse_policy_text

if TYPE_CHECKING:
    from layerguard.policy.model import Policy

DEFAULT_POLICY_FILENAME = "layerguard.yml"

DEFAULT_POLICY_YAML = """\
version: 1

source_extensions: [".ts", ".tsx", ".js", ".jsx"]
ignore_dirs: [node_modules, dist, build, coverage, .git, .vite]

# Lowest layer first: each layer may import the layers listed before it.
layers:
  - name: shared
    root: src/shared
  - name: core
    root: src/core
  - name: modules
    root: src/modules
    modules: true
  - name: app
    root: src/app

# Mirrors resolve.alias in vite.config.ts.
aliases:
  "@": src
  "@core": src/core
  "@modules": src/modules
  "@shared": src/shared

roles:
  - name: ui
    stems: [ui]
    forbid:
      patterns:
        - regex: "\\\\bfetch\\\\s*\\\\("
          message: "UI must not perform network calls"
        - text: tempoRequest
          message: "UI must not call the RPC client"
      imports: ["core/tempo", "/service"]
      layers: [core]
  - name: store
    stems: [store]
    forbid:
      patterns:
        - regex: "\\\\bfetch\\\\s*\\\\("
          message: "store must not fetch; go through the service"
        - text: tempoRequest
          message: "store must not call the RPC client"
      imports: ["./ui", "core/tempo", "axios"]
  - name: service
    stems: [service]
    forbid:
      patterns:
        - regex: "\\\\bswitch\\\\s*\\\\("
          message: "business logic belongs in core, not in a module service"
        - text: Math.random
          message: "service must not fabricate data"
      imports: ["./ui", "./store", "@/modules/", "@modules/"]
  - name: types
    stems: [types]
  - name: index
    stems: [index]
    public_api: true
    forbid:
      imports: ["./store", "./service"]

modules:
  required_files: [index, ui, store, service, types]
  allow_public_entry: true

required_paths: [src/app, src/modules, src/core, src/shared]
forbidden_paths: [src/core/tempo/mocks]
bypass_markers: ["@ts-ignore", "@ts-nocheck", " as any", "eslint-disable"]

rules:
  layer-direction: { enabled: true, severity: error }
  cross-module: { enabled: true, severity: error }
  required-files: { enabled: true, severity: error }
  role-content: { enabled: true, severity: error }
  forbidden-path: { enabled: true, severity: error }
  bypass-marker: { enabled: true, severity: warn }
  required-path: { enabled: true, severity: error }
  module-cycle: { enabled: true, severity: error }
"""


def default_policy() -> Policy:
    """Return the built-in policy."""
    return parse_policy_text(DEFAULT_POLICY_YAML)
