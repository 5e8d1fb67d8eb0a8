"""
In-memory document store for development and testing.

Supports the subset of MongoDB query syntax LeadPilot itself issues:

- Filters: equality (dotted paths, array membership), ``$eq``, ``$ne``,
  ``$in``, ``$nin``, ``$exists``, ``$gt``/``$gte``/``$lt``/``$lte``,
  ``$regex`` (+ ``$options``), compiled ``re.Pattern`` values, ``$or``, ``$and``.
- Aggregation stages: ``$match``, ``$group`` (``$sum``, ``$avg``, ``$max``,
  ``$min``), ``$sort``, ``$skip``, ``$limit``, ``$project``, ``$count``.
- Updates: ``$set``, ``$setOnInsert``, ``$inc``.
"""

import copy
import re
import uuid
from typing import Any, Dict, List, Mapping, Optional


def _resolve(doc: Any, path: str) -> List[Any]:
    """All values reachable at ``path``; array elements are included alongside the array."""
    current = [doc]
    for part in path.split("."):
        nxt = []
        for item in current:
            if isinstance(item, dict):
                if part in item:
                    nxt.append(item[part])
            elif isinstance(item, list):
                for element in item:
                    if isinstance(element, dict) and part in element:
                        nxt.append(element[part])
        current = nxt
    values = []
    for value in current:
        values.append(value)
        if isinstance(value, list):
            values.extend(value)
    return values


def _compare(a: Any, b: Any, op: str) -> bool:
    try:
        if op == "$gt":
            return a > b
        if op == "$gte":
            return a >= b
        if op == "$lt":
            return a < b
        return a <= b
    except TypeError:
        return False


def _regex_match(values: List[Any], pattern: Any, options: str = "") -> bool:
    if not isinstance(pattern, re.Pattern):
        flags = re.IGNORECASE if "i" in options else 0
        pattern = re.compile(pattern, flags)
    return any(isinstance(v, str) and pattern.search(v) for v in values)


def _equals(values: List[Any], expected: Any) -> bool:
    if isinstance(expected, re.Pattern):
        return _regex_match(values, expected)
    if expected is None:
        return not values or any(v is None for v in values)
    return any(v == expected for v in values)


def _apply_operator(values: List[Any], op: str, arg: Any, cond: Mapping[str, Any]) -> bool:
    if op == "$eq":
        return _equals(values, arg)
    if op == "$ne":
        return not _equals(values, arg)
    if op == "$in":
        return any(_equals(values, candidate) for candidate in arg)
    if op == "$nin":
        return not any(_equals(values, candidate) for candidate in arg)
    if op == "$exists":
        return bool(values) == bool(arg)
    if op in ("$gt", "$gte", "$lt", "$lte"):
        return any(_compare(v, arg, op) for v in values)
    if op == "$regex":
        return _regex_match(values, arg, cond.get("$options", ""))
    if op == "$options":
        return True
    raise ValueError(f"Unsupported query operator: {op}")


def matches(doc: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    """Return True if ``doc`` satisfies the MongoDB-style ``filter``."""
    for key, cond in filter.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in cond):
                return False
            continue
        if key == "$and":
            if not all(matches(doc, sub) for sub in cond):
                return False
            continue

        values = _resolve(doc, key)
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            if not all(_apply_operator(values, op, arg, cond) for op, arg in cond.items()):
                return False
        elif not _equals(values, cond):
            return False
    return True


def _project(doc: Dict[str, Any], projection: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    if not projection:
        return doc
    include = {k for k, v in projection.items() if v}
    exclude = {k for k, v in projection.items() if not v}
    if include:
        out = {k: doc[k] for k in include if k in doc}
        if "_id" not in exclude and "_id" in doc:
            out["_id"] = doc["_id"]
        return out
    return {k: v for k, v in doc.items() if k not in exclude}


def _sort(docs: List[Dict[str, Any]], sort: Mapping[str, int]) -> List[Dict[str, Any]]:
    result = list(docs)
    for key, direction in reversed(list(sort.items())):
        def sort_key(d, key=key):
            values = _resolve(d, key)
            value = values[0] if values else None
            return (value is not None, value if value is not None else 0)
        result.sort(key=sort_key, reverse=direction < 0)
    return result


def _evaluate(expr: Any, doc: Mapping[str, Any]) -> Any:
    """Evaluate an aggregation expression against one document."""
    if isinstance(expr, str) and expr.startswith("$"):
        values = _resolve(doc, expr[1:])
        return values[0] if values else None
    if isinstance(expr, dict) and len(expr) == 1:
        op, arg = next(iter(expr.items()))
        if op == "$cond":
            condition, if_true, if_false = arg
            return _evaluate(if_true, doc) if _evaluate(condition, doc) else _evaluate(if_false, doc)
        if op == "$eq":
            return _evaluate(arg[0], doc) == _evaluate(arg[1], doc)
        if op == "$ne":
            return _evaluate(arg[0], doc) != _evaluate(arg[1], doc)
        if op == "$size":
            value = _evaluate(arg, doc)
            return len(value) if isinstance(value, list) else 0
        if op == "$toLower":
            value = _evaluate(arg, doc)
            return value.lower() if isinstance(value, str) else value
    if isinstance(expr, dict):
        return {k: _evaluate(v, doc) for k, v in expr.items()}
    return expr


def _group(docs: List[Dict[str, Any]], spec: Mapping[str, Any]) -> List[Dict[str, Any]]:
    groups: Dict[Any, Dict[str, Any]] = {}
    order: List[Any] = []
    for doc in docs:
        key_value = _evaluate(spec["_id"], doc)
        hashable = repr(key_value)
        if hashable not in groups:
            groups[hashable] = {"_id": key_value, "_docs": []}
            order.append(hashable)
        groups[hashable]["_docs"].append(doc)

    results = []
    for hashable in order:
        bucket = groups[hashable]
        out = {"_id": bucket["_id"]}
        members = bucket["_docs"]
        for field, accumulator in spec.items():
            if field == "_id":
                continue
            op, arg = next(iter(accumulator.items()))
            evaluated = [_evaluate(arg, d) for d in members]
            numbers = [v for v in evaluated if isinstance(v, (int, float)) and not isinstance(v, bool)]
            if op == "$sum":
                out[field] = sum(numbers)
            elif op == "$avg":
                out[field] = sum(numbers) / len(numbers) if numbers else None
            elif op == "$max":
                out[field] = max(numbers) if numbers else None
            elif op == "$min":
                out[field] = min(numbers) if numbers else None
            else:
                raise ValueError(f"Unsupported accumulator: {op}")
        results.append(out)
    return results


def _set_path(doc: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    target = doc
    for part in parts[:-1]:
        if not isinstance(target.get(part), dict):
            target[part] = {}
        target = target[part]
    target[parts[-1]] = value


def _apply_update(doc: Dict[str, Any], update: Mapping[str, Any], inserting: bool) -> None:
    for field, value in update.get("$set", {}).items():
        _set_path(doc, field, copy.deepcopy(value))
    if inserting:
        for field, value in update.get("$setOnInsert", {}).items():
            _set_path(doc, field, copy.deepcopy(value))
    for field, value in update.get("$inc", {}).items():
        current = _resolve(doc, field)
        _set_path(doc, field, (current[0] if current else 0) + value)


class MemoryDocumentStore:
    """In-memory document store for development/testing. Implements DocumentStoreProtocol."""

    def __init__(self):
        self._collections: Dict[str, List[Dict[str, Any]]] = {}
        self.indexes: Dict[str, List[tuple]] = {}

    def _docs(self, collection: str) -> List[Dict[str, Any]]:
        return self._collections.setdefault(collection, [])

    def _select(self, collection: str, filter: Mapping[str, Any]) -> List[Dict[str, Any]]:
        return [d for d in self._docs(collection) if matches(d, filter)]

    async def find(
        self,
        collection: str,
        filter: Mapping[str, Any],
        projection: Optional[Mapping[str, Any]] = None,
        sort: Optional[Mapping[str, int]] = None,
        limit: int = 0,
        skip: int = 0,
    ) -> List[Dict[str, Any]]:
        docs = self._select(collection, filter)
        if sort:
            docs = _sort(docs, sort)
        if skip:
            docs = docs[skip:]
        if limit:
            docs = docs[:limit]
        return [_project(copy.deepcopy(d), projection) for d in docs]

    async def find_one(
        self,
        collection: str,
        filter: Mapping[str, Any],
        projection: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        docs = self._select(collection, filter)
        if not docs:
            return None
        return _project(copy.deepcopy(docs[0]), projection)

    async def count(self, collection: str, filter: Mapping[str, Any]) -> int:
        return len(self._select(collection, filter))

    async def aggregate(
        self, collection: str, pipeline: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        docs = [copy.deepcopy(d) for d in self._docs(collection)]
        for stage in pipeline:
            name, arg = next(iter(stage.items()))
            if name == "$match":
                docs = [d for d in docs if matches(d, arg)]
            elif name == "$group":
                docs = _group(docs, arg)
            elif name == "$sort":
                docs = _sort(docs, arg)
            elif name == "$skip":
                docs = docs[arg:]
            elif name == "$limit":
                docs = docs[:arg]
            elif name == "$project":
                docs = [_project(d, arg) for d in docs]
            elif name == "$count":
                docs = [{arg: len(docs)}]
            else:
                raise ValueError(f"Unsupported aggregation stage: {name}")
        return docs

    async def distinct(
        self, collection: str, field: str, filter: Mapping[str, Any]
    ) -> List[Any]:
        seen: List[Any] = []
        for doc in self._select(collection, filter):
            for value in _resolve(doc, field):
                if isinstance(value, list):
                    continue
                if value not in seen:
                    seen.append(value)
        return seen

    async def insert_one(self, collection: str, document: Dict[str, Any]) -> Any:
        doc = copy.deepcopy(document)
        doc.setdefault("_id", uuid.uuid4().hex)
        self._docs(collection).append(doc)
        return doc["_id"]

    async def upsert_one(
        self,
        collection: str,
        filter: Mapping[str, Any],
        update: Dict[str, Any],
    ) -> Dict[str, Any]:
        existing = self._select(collection, filter)
        if existing:
            doc = existing[0]
            _apply_update(doc, update, inserting=False)
        else:
            doc = {
                k: copy.deepcopy(v)
                for k, v in filter.items()
                if not k.startswith("$") and not isinstance(v, (dict, re.Pattern))
            }
            doc["_id"] = uuid.uuid4().hex
            _apply_update(doc, update, inserting=True)
            self._docs(collection).append(doc)
        return copy.deepcopy(doc)

    async def update_one(
        self,
        collection: str,
        filter: Mapping[str, Any],
        update: Dict[str, Any],
    ) -> int:
        existing = self._select(collection, filter)
        if not existing:
            return 0
        _apply_update(existing[0], update, inserting=False)
        return 1

    async def delete_one(self, collection: str, filter: Mapping[str, Any]) -> int:
        docs = self._docs(collection)
        for i, doc in enumerate(docs):
            if matches(doc, filter):
                del docs[i]
                return 1
        return 0

    async def create_index(
        self, collection: str, keys: List[tuple], unique: bool = False
    ) -> None:
        self.indexes.setdefault(collection, []).append(tuple(keys))
