# mnemos

Building blocks for a long-lived agent memory:

- `mnemos.embedding`: embedding providers. `NoopEmbedder` never produces a
  vector, `OllamaEmbedder` calls a local Ollama daemon's `/api/embed`, and
  `OpenAIEmbedder` calls any OpenAI-compatible `/embeddings` endpoint.
  `probe_ollama` reports whether an Ollama daemon answers.
- `mnemos.installer`: idempotent edits to MCP client configuration files
  (JSON or TOML), leaving every unrelated key untouched.
- `mnemos.hooks`: idempotent edits to the hook section of Claude Code's
  `settings.json`.
- `mnemos.promotion`: groups correction observations and, once a group holds
  three, writes or versions a skill built from them.
- `mnemos.dream`: one consolidation pass (prune, decay, promote, rumination
  detection and auto-resolve) and a `Journal` describing it.

## Install

```
pip install .
```

Run the tests with:

```
pip install ".[test]"
pytest
```

## Embeddings

```python
from mnemos.embedding import OllamaEmbedder, probe_ollama

if probe_ollama("http://localhost:11434", 0.5):
    embedder = OllamaEmbedder("http://localhost:11434", "nomic-embed-text", 768, 30.0)
    vector = embedder.embed("sqlite wal mode")
```

Every provider has `embed(text)`, `dimension()` and `model()`. Unset settings
fall back to defaults: Ollama uses `http://localhost:11434`,
`nomic-embed-text` and 768 dimensions; the OpenAI-compatible client uses
`https://api.openai.com/v1`, `text-embedding-3-small` and 1536 dimensions,
and sends `Authorization: Bearer <api_key>` when a key is given. Both time
out after 30 seconds by default. `model()` returns `ollama/<model>`,
`openai/<model>` or `none`.

An empty text yields `None` without a request. A failed call, a non-2xx
status, an undecodable body or an empty result raises `EmbeddingError`.

## Wiring a client

```python
from mnemos.installer import ServerEntry, detect_targets, install

entry = ServerEntry(command="/usr/local/bin/mnemos", args=["serve"])
for target in detect_targets():
    changed = install(target, entry)
    print(target.name, "updated" if changed else "already up to date")
```

`detect_targets()` returns the Claude Code, Cursor, Windsurf and Codex CLI
config files (and Claude Desktop on macOS and Windows) whose file or parent
directory exists. A `Target` can also be built by hand:
`Target(name, path, group="mcpServers", key="mnemos", format=ConfigFormat.JSON)`.

`install` returns `False` when the entry is already present and identical,
`uninstall` returns `False` when there is nothing to remove, and
`is_installed` reports whether the entry exists. Files are written through a
temporary file and a rename. A config that cannot be read or parsed raises
`InstallerError`.

Session hooks for Claude Code:

```python
from mnemos.hooks import HookEntry, claude_settings_path, install_hook

install_hook(claude_settings_path(), HookEntry(matcher="startup",
                                               command="mnemos prewarm",
                                               timeout=10))
```

A `HookEntry` goes under `hooks.<event>` (default `SessionStart`); installing
is a no-op when a group with the same matcher and command exists.
`uninstall_hook` removes the group and drops the event key, and the `hooks`
key, once they are empty. `is_hook_installed` reports presence.
`CLAUDE_CONFIG_DIR` is honoured when locating Claude Code's files;
`claude_settings_path()` returns `None` when no home directory can be found.

## Skill promotion

`group_corrections` clusters observations by agent, project and label (the
first non-structural tag, otherwise the first three words of the title) and
orders the groups by project, then label. `synthesise_promotion` renders a
group's procedure ("When this applies", "Avoid", "Do") and pitfalls text.

`SkillPromoter(reader, skills, logger)` does the work: `reader` must offer
`list_by_project(agent_id, project, obs_type, limit)` and `skills` must offer
`list(agent_id)` and `save(draft)`. `promote()` returns how many skills were
created or version-bumped. Each skill is tagged `auto-promoted` and
`promoted-origin:<hash>`, so a later pass with no new corrections changes
nothing.

## Dream pass

`DreamService(memory, store, reader, skills, rumination, logger, stale_days,
decay_amount, dedup_window)` runs consolidation against the objects it is
given:

- `store`: `prune(now)` and `decay_importance(stale_days, amount)`, both
  returning counts; a failure of either raises `DreamError`.
- `reader` and `skills`: as for `SkillPromoter`; promotion is skipped when
  either is missing.
- `rumination`: `persist_detected()` returning `(inserted, updated)`,
  `get(candidate_id)` returning an object with a `status`, or raising
  `CandidateNotFound`, and `resolve(candidate_id, resolved_by)`.
- `memory`: `save(**fields)`, used to write the journal.

`run(write_journal)` performs one pass and returns a `Journal`; when
`write_journal` is true and anything changed, the summary is saved as a
`dream` observation. Skills tagged `ruminated-from:<id>` close the matching
pending candidate. `Journal.summary()` renders the counts as text.
`watch(interval, stop)` runs a pass at once and then every `interval` seconds
until the `threading.Event` `stop` is set.

## What this package does not do

It has no storage of its own: observations, skills, sessions and rumination
candidates live wherever the objects handed to `SkillPromoter` and
`DreamService` keep them. It does not detect rumination candidates itself,
does not link near-duplicate observations (the journal's `linked` count stays
at zero), and provides no MCP server and no command-line tool.