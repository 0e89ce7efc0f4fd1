"""
YAML-backed document store.

Each table lives in its own ``<table>.yaml`` file inside the data directory
as a list of dict documents. Every public operation takes the directory's
file lock for its whole read-modify-write, so a single call is atomic;
sequences of calls are not.
"""
import copy
import logging
import os
import uuid
from typing import Dict, List, Optional

import yaml
from filelock import FileLock

from .errors import NotFoundError

logger = logging.getLogger(__name__)

TABLES = ('teams', 'matches', 'groups', 'staff', 'tournament', 'admins')
LABELS = {
    'teams': 'Team',
    'matches': 'Match',
    'groups': 'Group',
    'staff': 'Staff member',
    'tournament': 'Tournament',
    'admins': 'Admin',
}


class DocumentStore:
    def __init__(self, data_dir: str, timeout: int = 10):
        self.data_dir = data_dir
        os.makedirs(data_dir, exist_ok=True)
        self._lock = FileLock(os.path.join(data_dir, '.lock'), timeout=timeout)

    def __repr__(self):
        return f"DocumentStore(data_dir={self.data_dir})"

    def _table_path(self, table: str) -> str:
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")
        return os.path.join(self.data_dir, f'{table}.yaml')

    def _load(self, table: str) -> List[Dict]:
        path = self._table_path(table)
        if not os.path.exists(path):
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(f'Failed to parse {path}: {e}')
            return []
        return data if isinstance(data, list) else []

    def _save(self, table: str, docs: List[Dict]):
        with open(self._table_path(table), 'w', encoding='utf-8') as f:
            yaml.dump(docs, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    @staticmethod
    def _index_of(docs: List[Dict], doc_id: str) -> int:
        for i, doc in enumerate(docs):
            if doc.get('_id') == doc_id:
                return i
        return -1

    def list(self, table: str) -> List[Dict]:
        """Return every document in a table, in insertion order."""
        with self._lock:
            return self._load(table)

    def query(self, table: str, **equals) -> List[Dict]:
        """Return documents whose fields equal all the given values."""
        return [
            doc for doc in self.list(table)
            if all(doc.get(field) == value for field, value in equals.items())
        ]

    def first(self, table: str, **equals) -> Optional[Dict]:
        found = self.query(table, **equals)
        return found[0] if found else None

    def find(self, table: str, doc_id: str) -> Optional[Dict]:
        """Return a document by id, or None."""
        with self._lock:
            docs = self._load(table)
        index = self._index_of(docs, doc_id)
        return docs[index] if index >= 0 else None

    def get(self, table: str, doc_id: str) -> Dict:
        """Return a document by id, raising NotFoundError if absent."""
        doc = self.find(table, doc_id)
        if doc is None:
            raise NotFoundError(f"{LABELS[table]} not found: {doc_id}")
        return doc

    def insert(self, table: str, doc: Dict) -> str:
        """Insert a copy of ``doc`` under a fresh id and return the id."""
        new_doc = copy.deepcopy(doc)
        new_doc['_id'] = uuid.uuid4().hex
        with self._lock:
            docs = self._load(table)
            docs.append(new_doc)
            self._save(table, docs)
        return new_doc['_id']

    def patch(self, table: str, doc_id: str, fields: Dict) -> Dict:
        """Shallow-merge ``fields`` into a document. A None value removes the field."""
        with self._lock:
            docs = self._load(table)
            index = self._index_of(docs, doc_id)
            if index < 0:
                raise NotFoundError(f"{LABELS[table]} not found: {doc_id}")
            doc = docs[index]
            for key, value in fields.items():
                if key == '_id':
                    continue
                if value is None:
                    doc.pop(key, None)
                else:
                    doc[key] = copy.deepcopy(value)
            self._save(table, docs)
            return doc

    def replace(self, table: str, doc_id: str, doc: Dict) -> Dict:
        with self._lock:
            docs = self._load(table)
            index = self._index_of(docs, doc_id)
            if index < 0:
                raise NotFoundError(f"{LABELS[table]} not found: {doc_id}")
            new_doc = copy.deepcopy(doc)
            new_doc['_id'] = doc_id
            docs[index] = new_doc
            self._save(table, docs)
            return new_doc

    def delete(self, table: str, doc_id: str):
        with self._lock:
            docs = self._load(table)
            index = self._index_of(docs, doc_id)
            if index < 0:
                raise NotFoundError(f"{LABELS[table]} not found: {doc_id}")
            del docs[index]
            self._save(table, docs)
