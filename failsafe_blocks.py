# failsafe_blocks.py
# Locate PLC blocks in a parsed XML tree, classify their EHS inputs and
# collapse repeated instances into one fail-safe record each.
import logging

logger = logging.getLogger("ehsalyze.blocks")

BLOCK_KEY = "block"
ATTRS_KEY = "$"

EHS_MARK = "EHS"
EHS_HIGH = "EHSH"
EHS_LOW = "EHSL"

NORMAL_FAIL_SAFE = "Normal Fail Safe"
REVERSED_FAIL_SAFE = "Reversed Fail Safe"
UNKNOWN_FAIL_SAFE = "Unknown"
COMPLEX_FAIL_SAFE = "Complex Fail Safe"

REPORT_FIELDS = ("InstanceName", "TypeName", "FailSafeType")

# ---------------------- helpers ----------------------

def _as_list(x) -> list:
    """A lone node and a list of sibling nodes both come back as a list."""
    if x is None:
        return []
    return x if isinstance(x, list) else [x]

def _attrs(node) -> dict:
    if not isinstance(node, dict):
        return {}
    a = node.get(ATTRS_KEY)
    return a if isinstance(a, dict) else {}

def _child(node, key):
    return node.get(key) if isinstance(node, dict) else None

# ---------------------- locator ----------------------

def iter_block_groups(tree):
    """
    Depth-first walk of a parse tree. Yields the value of every `block` key
    as a list, siblings in source order. A block group is a terminus: its
    interior is left to the classifier.
    """
    # (is_group, value); children pushed in reverse so pops follow source order
    stack = [(False, tree)]
    while stack:
        is_group, node = stack.pop()
        if is_group:
            yield node
            continue
        pending = []
        if isinstance(node, dict):
            for key, value in node.items():
                if key == BLOCK_KEY:
                    pending.append((True, _as_list(value)))
                elif isinstance(value, (dict, list)):
                    pending.append((False, value))
        elif isinstance(node, list):
            pending = [(False, item) for item in node if isinstance(item, (dict, list))]
        stack.extend(reversed(pending))

def locate_blocks(tree) -> list:
    """Flatten all block groups of `tree` into one list of block nodes."""
    blocks = []
    for group in iter_block_groups(tree):
        blocks.extend(group)
    return blocks

# ---------------------- classifier ----------------------

def fail_safe_type(formal: str) -> str:
    if EHS_HIGH in formal:
        return NORMAL_FAIL_SAFE
    if EHS_LOW in formal:
        return REVERSED_FAIL_SAFE
    return UNKNOWN_FAIL_SAFE

def _input_variables(block) -> list:
    return [v for v in _as_list(_child(_child(block, "inputVariables"), "variable"))
            if isinstance(v, dict)]

def _has_connection(variable) -> bool:
    # empty <connection/> parses to "" and does not count
    return bool(_child(_child(variable, "connectionPointIn"), "connection"))

def classify_block(block) -> list[dict]:
    """
    Return one observation per connected EHS input of `block`.
    Blocks without both typeName and instanceName are not reportable.
    """
    attrs = _attrs(block)
    type_name = attrs.get("typeName")
    instance_name = attrs.get("instanceName")
    if not type_name or not instance_name:
        return []

    out = []
    for v in _input_variables(block):
        formal = _attrs(v).get("formalParameter") or ""
        if EHS_MARK not in formal or not _has_connection(v):
            continue
        out.append({
            "InstanceName": instance_name,
            "TypeName": type_name,
            "FailSafeType": fail_safe_type(formal),
        })
        logger.debug("Block %s (%s): %s -> %s", instance_name, type_name, formal, out[-1]["FailSafeType"])
    return out

# ---------------------- resolver ----------------------

def resolve_instances(observations) -> list[dict]:
    """
    One record per InstanceName, in order of first appearance.
    Any instance seen more than once becomes Complex Fail Safe, whether or not
    its observations agree.
    """
    groups = {}
    for obs in observations:
        groups.setdefault(obs["InstanceName"], []).append(obs)

    records = []
    for entries in groups.values():
        if len(entries) > 1:
            records.append({**entries[0], "FailSafeType": COMPLEX_FAIL_SAFE})
        else:
            records.append(entries[0])
    return records

# ---------------------- public API ----------------------

def extract_failsafe_records(tree) -> list[dict]:
    """Locate, classify and resolve every EHS block instance in `tree`."""
    blocks = locate_blocks(tree)
    raw = []
    for b in blocks:
        raw.extend(classify_block(b))
    records = resolve_instances(raw)
    logger.info("Blocks located: %d, EHS observations: %d, instances: %d",
                len(blocks), len(raw), len(records))
    return records

def summarize_records(records) -> dict:
    counts = {}
    for r in records:
        counts[r["FailSafeType"]] = counts.get(r["FailSafeType"], 0) + 1
    return counts
