"""
User-Based Collaborative Filtering

ALGORITHM:
==========
1. Load the requester's movie ratings: {content_id: score}
2. Fewer than 3 ratings → popularity fallback
3. Load every other user's movie ratings, grouped per user
4. Similarity to each peer (cosine, restricted to co-rated items)
5. Neighbors: similarity > 0.1, best 10
6. Predict each unseen item:
       predicted = Σ(rating × sim) / Σ(sim)     over neighbors who rated it
   keep predicted >= 3.5, best first
7. No candidates → popularity fallback
8. Resolve the top `limit` ids through content_cache (misses are dropped)

SIMILARITY:
===========
    sim(A, B) = Σ_c A[c]·B[c] / (‖A_c‖ · ‖B_c‖)      c = items both rated

Both norms are taken over the co-rated items only, NOT over each user's full
rating vector as in textbook cosine similarity. Two users who agree on the
few items they share score 1.0 however much else they rated. Rankings depend
on this, so it stays exactly as written.

Nothing is persisted between requests: neighbors are recomputed on every
cache miss (the endpoint's response is cached for 30 minutes).
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd
from loguru import logger

ALGORITHM_COLLABORATIVE = 'collaborative_filtering'
ALGORITHM_POPULAR = 'popular_fallback'


def restricted_cosine_similarity(user_a: Dict[int, float], user_b: Dict[int, float]) -> float:
    """
    Cosine similarity over the items both users rated

    Returns 0.0 when there is no overlap or either restricted norm is 0.
    """
    common = [content_id for content_id in user_a if content_id in user_b]
    if not common:
        return 0.0

    a = np.array([user_a[c] for c in common], dtype=float)
    b = np.array([user_b[c] for c in common], dtype=float)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    # clip float noise, e.g. 1.0000000000000002
    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))


@dataclass
class SimilarityEdge:
    """A peer and how similar they are to the requester"""
    user_id: int
    similarity: float
    ratings: Dict[int, float]


class CollaborativeRecommender:
    """
    Similarity recommender over the ratings table

    Collaborators:
    - ratings: get_ratings(user_id, content_type), get_all_other_ratings(user_id, content_type)
    - content: lookup_by_ids(ids, content_type)
    - popularity: popular_movies(page) -> TMDB page (results, total_results)
    """

    MIN_RATINGS = 3
    SIMILARITY_THRESHOLD = 0.1
    MAX_NEIGHBORS = 10
    MIN_PREDICTED_SCORE = 3.5

    def __init__(self, ratings, content, popularity, content_type: str = 'movie'):
        self.ratings = ratings
        self.content = content
        self.popularity = popularity
        self.content_type = content_type

    async def recommend(self, user_id: int, page: int = 1, limit: int = 20) -> Dict:
        rows = await self.ratings.get_ratings(user_id, self.content_type)

        if len(rows) < self.MIN_RATINGS:
            logger.debug(f"User {user_id} has {len(rows)} ratings, using popular fallback")
            return await self.popular_fallback(page, limit)

        user_ratings = {int(content_id): float(score) for content_id, score in rows}

        peers = self.group_by_user(await self.ratings.get_all_other_ratings(user_id, self.content_type))
        neighbors = self.find_neighbors(user_ratings, peers)
        candidates = self.score_candidates(user_ratings, neighbors)

        logger.debug(
            f"User {user_id}: {len(peers)} peers, {len(neighbors)} neighbors, "
            f"{len(candidates)} candidates"
        )

        if not candidates:
            return await self.popular_fallback(page, limit)

        top = candidates[:limit]
        scores = dict(top)
        found = await self.content.lookup_by_ids([content_id for content_id, _ in top], self.content_type)
        by_id = {item['id']: item for item in found}

        missing = len(top) - len(by_id)
        if missing:
            logger.debug(f"Skipping {missing} recommended items not in content cache")

        recommendations = [
            {**by_id[content_id], 'recommendationScore': scores[content_id]}
            for content_id, _ in top
            if content_id in by_id
        ]

        return {
            'recommendations': recommendations,
            'total': len(candidates),
            'page': page,
            'algorithm': ALGORITHM_COLLABORATIVE,
        }

    async def popular_fallback(self, page: int = 1, limit: int = 20) -> Dict:
        data = await self.popularity.popular_movies(page)
        return {
            'recommendations': data.get('results', [])[:limit],
            'total': data.get('total_results', 0),
            'page': page,
            'algorithm': ALGORITHM_POPULAR,
        }

    @staticmethod
    def group_by_user(rows: List[Tuple[int, int, float]]) -> Dict[int, Dict[int, float]]:
        """(user_id, content_id, rating) rows → {user_id: {content_id: rating}}"""
        if not rows:
            return {}

        df = pd.DataFrame(rows, columns=['user_id', 'content_id', 'rating'])
        return {
            int(peer_id): dict(zip(
                group['content_id'].astype(int).tolist(),
                group['rating'].astype(float).tolist(),
            ))
            for peer_id, group in df.groupby('user_id', sort=False)
        }

    def find_neighbors(
        self,
        user_ratings: Dict[int, float],
        peers: Dict[int, Dict[int, float]],
    ) -> List[SimilarityEdge]:
        """Peers above the similarity threshold, most similar first, at most MAX_NEIGHBORS"""
        edges = []
        for peer_id, peer_ratings in peers.items():
            similarity = restricted_cosine_similarity(user_ratings, peer_ratings)
            if similarity > self.SIMILARITY_THRESHOLD:
                edges.append(SimilarityEdge(peer_id, similarity, peer_ratings))

        edges.sort(key=lambda edge: edge.similarity, reverse=True)
        return edges[:self.MAX_NEIGHBORS]

    def score_candidates(
        self,
        user_ratings: Dict[int, float],
        neighbors: List[SimilarityEdge],
    ) -> List[Tuple[int, float]]:
        """
        Similarity-weighted average rating for every item the user hasn't rated

        Returns (content_id, predicted_score) pairs, predicted >= 3.5, best first.
        """
        score_sum: Dict[int, float] = {}
        weight_sum: Dict[int, float] = {}

        for edge in neighbors:
            for content_id, rating in edge.ratings.items():
                if content_id in user_ratings:
                    continue
                score_sum[content_id] = score_sum.get(content_id, 0.0) + rating * edge.similarity
                weight_sum[content_id] = weight_sum.get(content_id, 0.0) + edge.similarity

        predictions = [
            (content_id, score_sum[content_id] / weight_sum[content_id])
            for content_id in score_sum
        ]
        predictions = [p for p in predictions if p[1] >= self.MIN_PREDICTED_SCORE]
        predictions.sort(key=lambda p: p[1], reverse=True)
        return predictions
