# opascore

Computes security risk scores for the controls and frameworks of a
Kubernetes posture scan. It also provides the data documents and built-in
Rego helper modules that posture policies expect.

## Installation

```
pip install opascore
```

The package has no runtime dependencies.

## Scoring (`opascore.score`)

`ScoreUtil(resources=None, debug=None)` holds the scanned Kubernetes objects
as plain dictionaries, keyed by resource ID. IDs that are not in this
mapping are ignored when weights are added up.

`get_score(obj)` returns the weight of one object:

- An object with a non-empty `kind` and `apiVersion` counts as a workload
  (`is_workload(obj)`). It weighs `1.0`. If it has `spec.replicas` greater
  than 1, the weight is multiplied by `replicas * 1.1`. If its kind is
  `DaemonSet` (in any case) and `status.desiredNumberScheduled` is positive,
  the weight is also multiplied by that number.
- An object with a `relatedObjects` list is weighed by the same rules as a
  workload. The rules are applied to the object that holds the list, and
  only if at least one related object is a workload. The result is never
  below `1.0`.
- Every other object weighs `1.0`.

A control is scored from the IDs of its failed resources and the IDs of all
its resources, failed ones included:

- `control_v2_score(failed_ids, all_ids, score_factor)` multiplies both
  weights by `score_factor`. It returns a named tuple `(score, unnormalized,
  wcs)`. Here `score` is `unnormalized * 100 / wcs`, or `0.0` when `wcs` is
  not positive.
- `control_score(failed_ids, all_ids, base_score)` works the same way, with
  two differences. A control without failures has a worst case of exactly
  `base_score`. When the worst case is not positive, the unnormalized score
  is returned as the score.

Both functions log an error through the `opascore.score` logger when the
worst case is not positive.

`ControlInput(control_id, failed_ids, all_ids, score_factor)` describes one
control for bulk scoring:

- `controls_summaries_score(controls)` scores each `ControlInput` in place
  and sets its `score` field. It returns the total unnormalized score and
  the total worst case.
- `framework_score(name, controls)` returns the framework's score as a
  percentage. It raises `ScoreError`, a subclass of `ValueError`, when the
  total worst case is zero.

```python
from opascore.score import ControlInput, ScoreUtil

resources = {
    "deploy": {"apiVersion": "apps/v1", "kind": "Deployment", "spec": {"replicas": 3}},
    "pod": {"apiVersion": "v1", "kind": "Pod"},
}
util = ScoreUtil(resources, debug=False)
control = ControlInput("control-1", failed_ids=["deploy"], all_ids=["deploy", "pod"], score_factor=7.0)
print(util.framework_score("example", [control]), control.score)
```

### Debug output

Pass `debug=True`, or set `ARMO_DEBUG_MODE=true` in the environment and leave
`debug` unset. Intermediate scores are then printed to standard output.

## Rego dependencies (`opascore.resources`, `opascore.rego_modules`)

- `load_rego_modules()` returns the built-in helper modules, keyed by package
  name: `cautils`, `designators` and `kubernetes.api.client`. They cover
  list and object helpers, Unix permission and ownership checks, namespace
  designators, and Kubernetes API queries. `builtin_modules()` in
  `opascore.rego_modules` returns the same mapping. The module texts are
  also available as `CAUTILS`, `DESIGNATORS` and `KUBERNETES_API_CLIENT`.
- `load_rego_files(directory)` reads every `*.rego` file under a directory
  tree. It returns a dictionary that maps a name to the file content. The
  name is the file's base name with the characters `.`, `r`, `e`, `g` and
  `o` stripped from both ends. Unreadable files are reported on standard
  output and skipped.
- `RegoK8sConfig` holds the API connection settings that policies read as
  `data.k8sconfig`.
  - `RegoK8sConfig.from_connection(host, bearer_token, ca_file, cert_file,
    key_file)` prefixes the token with `Bearer `. An empty host falls back
    to `https://$KUBERNETES_SERVICE_HOST:$KUBERNETES_SERVICE_PORT`.
  - `to_dict()` returns the settings in their JSON form.
- `RegoDependenciesData` carries the cluster name, the posture control
  inputs, the data control inputs and a `RegoK8sConfig`.
  - `filtered_posture_control_inputs(settings)` keeps only the inputs named
    by three-part paths such as
    `settings.postureControlInputs.sensitiveKeyNames`.
  - `to_storage()` returns the control inputs as a plain data document.
  - `to_dict()` returns the whole structure in its JSON form.
- `posture_inputs_storage(posture_control_inputs)` returns a data document
  that holds only the posture control inputs.

## Helpers (`opascore.slices`)

- `string_in_slice(items, value)` tells whether `value` is one of `items`.
- `string_in_slice_case_insensitive(items, value)` does the same, ignoring
  case.
- `map_keys(mapping)` returns the keys of `mapping` as a list, or an empty
  list for `None`.
- `unique_strings(items)` returns the distinct values of `items`.

## What the package does not do

- It does not evaluate Rego. The built-in modules are returned as source
  text, and the data documents are plain dictionaries. Both must be handed
  to a policy engine of your choice.
- It does not read kubeconfig files or talk to a cluster. Connection
  settings are passed in explicitly.
- It has no report data model and no command-line interface. Scoring
  works on resource dictionaries and lists of resource IDs supplied by
  the caller.

## Running the tests

```
pip install -e ".[test]"
pytest
```