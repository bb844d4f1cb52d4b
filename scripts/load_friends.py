"""
ETL script to load a friendship edge list into Neo4j.

It expects a SNAP-style CSV (default: `friends_edges.csv` at the project
root, override with the first command-line argument) with columns
`id_1,id_2`, one undirected friendship per row.

This script:
- Creates :User nodes with `id` and a placeholder `username` (no password,
  so loaded users cannot log in)
- Creates a :KNOWS relationship in both directions for every edge
"""

from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
from neo4j import GraphDatabase

from friendgraph.config import get_settings
from friendgraph.graph import USER_CONSTRAINTS


PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_EDGES = PROJECT_ROOT / "friends_edges.csv"


def load_edges(path: Path) -> pd.DataFrame:
    """Load friendship edges as string ids, dropping self-loops and duplicates."""
    df = pd.read_csv(path, dtype=str)
    df = df.rename(columns={"id_1": "src", "id_2": "dst"})
    df = df[["src", "dst"]].dropna()
    df = df[df["src"] != df["dst"]].copy()
    # Undirected: (a, b) and (b, a) are the same friendship.
    swap = df["src"] > df["dst"]
    df.loc[swap, ["src", "dst"]] = df.loc[swap, ["dst", "src"]].values
    return df.drop_duplicates().reset_index(drop=True)


def run(path: Path = DEFAULT_EDGES) -> None:
    """Main ETL entrypoint."""
    settings = get_settings()
    print(f"[Friends ETL] Connecting to Neo4j at: {settings.neo4j_uri}")

    driver = GraphDatabase.driver(
        settings.neo4j_uri,
        auth=(settings.neo4j_user, settings.neo4j_password),
    )
    with driver.session() as test_session:
        test_session.run("RETURN 1").single()
    print("[Friends ETL] ✓ Connection successful")

    print(f"[Friends ETL] Loading {path}...")
    edges = load_edges(path)
    user_ids = sorted(set(edges["src"]) | set(edges["dst"]))
    print(f"[Friends ETL] Loaded: {len(edges)} friendships, {len(user_ids)} users")

    with driver.session() as session:
        print("[Friends ETL] Creating User constraints...")
        for constraint in USER_CONSTRAINTS:
            session.run(constraint)
        print("[Friends ETL] ✓ Constraints created")

        print(f"[Friends ETL] Creating {len(user_ids)} User nodes...")
        user_count = 0
        for user_id in user_ids:
            session.run(
                """
                MERGE (u:User {id: $id})
                ON CREATE SET u.username = $username
                """,
                id=user_id,
                username=f"user_{user_id}",
            )
            user_count += 1
            if user_count % 1000 == 0:
                print(f"[Friends ETL] Created {user_count} users...")

        print(f"[Friends ETL] ✓ Created {user_count} User nodes")

        print(f"[Friends ETL] Creating {len(edges)} friendships...")
        edge_count = 0
        for row in edges.itertuples(index=False):
            session.run(
                """
                MATCH (a:User {id: $src}), (b:User {id: $dst})
                MERGE (a)-[:KNOWS]->(b)
                MERGE (b)-[:KNOWS]->(a)
                """,
                src=row.src,
                dst=row.dst,
            )
            edge_count += 1
            if edge_count % 10000 == 0:
                print(f"[Friends ETL] Created {edge_count} friendships...")

        print(f"[Friends ETL] ✓ Created {edge_count} friendships")

    with driver.session() as verify_session:
        user_count_result = verify_session.run("MATCH (u:User) RETURN count(u) AS cnt").single()
        knows_count_result = verify_session.run(
            "MATCH ()-[r:KNOWS]->() RETURN count(r) AS cnt"
        ).single()
        print(
            f"[Friends ETL] Verification: {user_count_result['cnt']} users, "
            f"{knows_count_result['cnt']} KNOWS relationships"
        )

    driver.close()
    print("[Friends ETL] ✓ ETL completed successfully")


if __name__ == "__main__":
    run(Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_EDGES)
