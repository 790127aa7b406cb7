"""Built-in Rego library modules shipped with the package.

The module sources are assembled from small Python tables so that the
resource mapping, the permission checks and the API queries each have a
single place where they are defined.
"""

from __future__ import annotations

import json

_PERMISSION_BITS = {"exec": 1, "write": 2, "read": 4}
_PERMISSION_SCOPES = {"user": 6, "group": 3, "everyone": 0}
_SPECIAL_BITS = {"setuid": 2048, "setgid": 1024, "sticky": 512}

# Attributes that must all be unset for a file mode to count as strict (0644).
_STRICT_FORBIDDEN = (
    "user.exec",
    "group.write",
    "group.exec",
    "everyone.write",
    "everyone.exec",
    "setgid",
    "setuid",
    "sticky",
)


def _rule(head: str, lines: list[str]) -> str:
    body = "\n".join(f"\t{line}" for line in lines)
    return f"{head} {{\n{body}\n}}"


def _object_literal(pairs: dict[str, str], indent: str = "\t") -> str:
    inner = ",\n".join(f"{indent}\t{json.dumps(key)}: {value}" for key, value in pairs.items())
    return f"{{\n{inner}\n{indent}}}"


def _cautils_source() -> str:
    scope_fields = {
        scope: (
            f"unix_permission_from_octal(bits.rsh(perm, {shift}))"
            if shift
            else "unix_permission_from_octal(perm)"
        )
        for scope, shift in _PERMISSION_SCOPES.items()
    }
    special_fields = {name: f"bits.and(perm, {mask}) != 0" for name, mask in _SPECIAL_BITS.items()}
    octal_fields = {name: f"bits.and(perm, {mask}) != 0" for name, mask in _PERMISSION_BITS.items()}

    allow_lines = [
        "allowed := unix_permission(allow)",
        "observed := unix_permission(actual)",
    ]
    allow_lines += [
        f"_unix_perm_allow(allowed.{name}, observed.{name})" for name in _SPECIAL_BITS
    ]
    keys = ", ".join(json.dumps(name) for name in ("read", "write", "exec"))
    allow_lines.append(f"perm_keys := [{keys}]")
    allow_lines += [
        f"count({{k | k := perm_keys[_]; not _unix_perm_allow(allowed.{scope}[k], observed.{scope}[k])}}) == 0"
        for scope in _PERMISSION_SCOPES
    ]

    rules = [
        "package cautils",
        _rule("list_contains(items, element)", ["some i", "items[i] == element"]),
        _rule("getPodName(metadata) = name", ["name := metadata.name"]),
        _rule(
            "object_intersection(parent, sub) = result",
            ["result := {k: v | v := sub[k]; parent[k] == v}"],
        ),
        _rule("is_subobject(sub, parent)", ["object_intersection(sub, parent) == sub"]),
        _rule(
            "unix_permission(perm) = parsed",
            [f"parsed := {_object_literal({**scope_fields, **special_fields})}"],
        ),
        _rule(
            "unix_permission_from_octal(perm) = parsed",
            [f"parsed := {_object_literal(octal_fields)}"],
        ),
        _rule("is_not_strict_conf_permission(p)", ["not is_strict_conf_permission(p)"]),
        _rule(
            "is_strict_conf_permission(p)",
            ["perm := unix_permission(p)"] + [f"not perm.{attr}" for attr in _STRICT_FORBIDDEN],
        ),
        _rule("unix_permissions_allow(allow, actual)", allow_lines),
        _rule("_unix_perm_allow(allow, actual)", ["allow == true"]),
        _rule("_unix_perm_allow(allow, actual)", ["allow == actual"]),
        _rule("is_not_strict_conf_ownership(ownership)", ["not is_strict_conf_ownership(ownership)"]),
        _rule("is_strict_conf_ownership(ownership)", ["ownership.err"]),
        _rule("is_strict_conf_ownership(ownership)", ["ownership.uid == 0", "ownership.gid == 0"]),
    ]
    return "\n\n".join(rules) + "\n"


def _designators_source() -> str:
    rules = [
        "package designators\n\nimport data.cautils",
        _rule("included_namespaces(namespace)", ['cautils.list_contains(["default"], namespace)']),
        _rule(
            "excluded_namespaces(namespace)",
            ['not cautils.list_contains(["excluded"], namespace)'],
        ),
        _rule("forbidden_wlids(wlid)", ["input.forbidden_wlids[_] == wlid"]),
        _rule("filter_k8s_object(obj) = filtered", ["filtered := obj"]),
    ]
    return "\n\n".join(rules) + "\n"


# Lookup table of API paths for the most common resource kinds.
_API_GROUPS = {
    "services": "api/v1",
    "pods": "api/v1",
    "configmaps": "api/v1",
    "secrets": "api/v1",
    "persistentvolumeclaims": "api/v1",
    "daemonsets": "apis/apps/v1",
    "deployments": "apis/apps/v1",
    "statefulsets": "apis/apps/v1",
    "horizontalpodautoscalers": "api/autoscaling/v1",
    "jobs": "apis/batch/v1",
    "cronjobs": "apis/batch/v1beta1",
    "ingresses": "api/extensions/v1beta1",
    "replicasets": "apis/apps/v1",
    "networkpolicies": "apis/networking.k8s.io/v1",
    "clusterroles": "apis/rbac.authorization.k8s.io/v1",
    "clusterrolebindings": "apis/rbac.authorization.k8s.io/v1",
    "roles": "apis/rbac.authorization.k8s.io/v1",
    "rolebindings": "apis/rbac.authorization.k8s.io/v1",
    "serviceaccounts": "api/v1",
}

_CONFIG_BINDINGS = {
    "token": "token",
    "host": "host",
    "crt_file": "crtfile",
    "client_crt_file": "clientcrtfile",
    "client_key_file": "clientkeyfile",
}

_AUTHENTICATED = {
    "headers": '{"authorization": token}',
    "tls_client_cert_file": "client_crt_file",
    "tls_client_key_file": "client_key_file",
    "tls_ca_cert_file": "crt_file",
    "raise_error": "true",
}

_ANONYMOUS = {
    "raise_error": "true",
    "tls_insecure_skip_verify": "true",
}


def _http_query(signature: str, url_format: str, url_args: list[str], options: dict[str, str]) -> str:
    args = ", ".join(url_args)
    request = {
        "url": f'sprintf("{url_format}", [{args}])',
        "method": '"get"',
        **options,
    }
    return f"{signature} = http.send({_object_literal(request, indent='')})"


def _kubernetes_api_client_source() -> str:
    group = "resource_group_mapping[resource]"
    bindings = "\n".join(
        f"{name} := data.k8sconfig.{field}" for name, field in _CONFIG_BINDINGS.items()
    )
    mapping = _object_literal({kind: json.dumps(path) for kind, path in _API_GROUPS.items()}, indent="")
    rules = [
        "package kubernetes.api.client",
        bindings,
        f"resource_group_mapping := {mapping}",
        _http_query(
            "query_name_ns(resource, name, namespace)",
            "%v/%v/namespaces/%v/%v/%v",
            ["host", group, "namespace", "resource", "name"],
            _AUTHENTICATED,
        ),
        _http_query(
            "query_label_selector_ns(resource, selector, namespace)",
            "%v/%v/namespaces/%v/%v?labelSelector=%v",
            ["host", group, "namespace", "resource", "label_map_to_query_string(selector)"],
            _AUTHENTICATED,
        ),
        _http_query(
            "query_field_selector_ns(resource, field, selector, namespace)",
            "%v/%v/namespaces/%v/%v?fieldSelector=%v",
            [
                "host",
                group,
                "namespace",
                "resource",
                "field_transform_to_qry_param(field, selector)",
            ],
            _AUTHENTICATED,
        ),
        _http_query(
            "query_all(resource)",
            "%v/%v/%v",
            ["host", group, "resource"],
            _AUTHENTICATED,
        ),
        _http_query(
            "query_all_no_auth(resource)",
            "%v/%v/namespaces/default/%v",
            ["host", group, "resource"],
            _ANONYMOUS,
        ),
        _rule(
            "field_transform_to_qry_param(field, selector) = query",
            [
                'prefixed := {concat(".", [field, k]): v | v := selector[k]}',
                "query := label_map_to_query_string(prefixed)",
            ],
        ),
        'label_map_to_query_string(labels) = concat(",", '
        '[pair | v := labels[k]; pair := concat("%3D", [k, v])])',
    ]
    return "\n\n".join(rules) + "\n"


CAUTILS = _cautils_source()
DESIGNATORS = _designators_source()
KUBERNETES_API_CLIENT = _kubernetes_api_client_source()


def builtin_modules() -> dict[str, str]:
    """Return a fresh mapping of built-in Rego module names to their source."""
    return {
        "cautils": CAUTILS,
        "designators": DESIGNATORS,
        "kubernetes.api.client": KUBERNETES_API_CLIENT,
    }