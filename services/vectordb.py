"""
Semantic journal search using ChromaDB.
"""

import re
import logging
from typing import List, Dict

from config import (
    log_event,
    chroma_client,
    get_embed_model,
    SEARCH_SIMILARITY_THRESHOLD,
)
from db import session_scope, Journal
from state import CHROMA_COLLECTIONS
from services.blocks import load_document, to_plain_text


def get_embedding(text: str) -> list:
    """Get embedding vector for text using FastEmbed."""
    embeddings = list(get_embed_model().embed([text]))
    return embeddings[0].tolist()


def collection_name(user_id: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", user_id.lower()).strip("-") or "default"
    return f"inkwell_journals_{slug}"[:63].rstrip("-_")


def get_collection(user_id: str):
    """Get or create a Chroma collection for a user."""
    coll_name = collection_name(user_id)
    if coll_name in CHROMA_COLLECTIONS:
        return CHROMA_COLLECTIONS[coll_name]
    collection = chroma_client.get_or_create_collection(
        name=coll_name,
        metadata={"hnsw:space": "cosine"}
    )
    CHROMA_COLLECTIONS[coll_name] = collection
    return collection


def sync_collection(user_id: str):
    """Rebuild a user's collection from their (non-trashed) journals."""
    log_event(logging.INFO, "chroma_sync_start", user_id=user_id)
    collection = get_collection(user_id)

    try:
        existing = collection.get()
        if existing and existing['ids']:
            collection.delete(ids=existing['ids'])
            log_event(logging.DEBUG, "chroma_cleared_existing", user_id=user_id, count=len(existing['ids']))
    except Exception as e:
        log_event(logging.DEBUG, "chroma_clear_skip", user_id=user_id, error=str(e))

    with session_scope() as session:
        journals = session.query(Journal).filter(
            Journal.user_id == user_id,
            Journal.trashed_at.is_(None),
        ).all()
        rows = [(j.id, j.title, j.content, j.updated_at.isoformat()) for j in journals]

    ids = []
    documents = []
    embeddings = []
    metadatas = []

    for journal_id, title, content, updated_at in rows:
        text = f"{title}: {to_plain_text(load_document(content))}"
        ids.append(journal_id)
        documents.append(text)
        embeddings.append(get_embedding(text))
        metadatas.append({"title": title, "updated_at": updated_at})

    if ids:
        collection.add(
            ids=ids,
            documents=documents,
            embeddings=embeddings,
            metadatas=metadatas
        )
        log_event(logging.INFO, "chroma_sync_complete", user_id=user_id, journals=len(ids))
    else:
        log_event(logging.INFO, "chroma_sync_empty", user_id=user_id)
    return len(ids)


def find_related_journals(user_id: str, query: str, limit: int = 5) -> List[Dict]:
    """
    Journals whose content is semantically close to the query.
    Returns [{"id", "title", "similarity"}] best first, above the threshold.
    """
    if sync_collection(user_id) == 0:
        return []

    try:
        collection = get_collection(user_id)
        results = collection.query(
            query_embeddings=[get_embedding(query)],
            n_results=min(limit, collection.count()),
            include=["metadatas", "distances"]
        )
    except Exception as e:
        log_event(logging.ERROR, "chroma_query_error", user_id=user_id, error=str(e))
        return []

    hits = []
    for journal_id, metadata, distance in zip(results['ids'][0], results['metadatas'][0],
                                              results['distances'][0]):
        similarity = 1 - distance  # Convert distance to similarity
        if similarity >= SEARCH_SIMILARITY_THRESHOLD:
            hits.append({
                "id": journal_id,
                "title": metadata.get("title", ""),
                "similarity": round(similarity, 3),
            })

    log_event(logging.INFO, "semantic_search", user_id=user_id, hits=len(hits))
    return hits
