# movie_tracker/recommendation_logic.py
import asyncio
from typing import Dict, List, Optional

from . import crud, schemas
from .exceptions import InvalidInput
from .rating_index import RatingIndex

LIKED_THRESHOLD = 4 # Ratings below this carry no signal


class RecommendationEngine:
    """
    Neighbor-based collaborative filtering over the global rating index.

    Users who rated one of the target user's liked movies at LIKED_THRESHOLD
    or above are neighbors; their liked movies the target has not watched
    become candidates, scored by the sum of the neighbors' ratings.
    The engine keeps no state between calls, so one instance per request is fine.
    """

    def __init__(self, index: RatingIndex, max_neighbors: Optional[int] = None):
        if max_neighbors is not None and max_neighbors <= 0:
            raise InvalidInput("max_neighbors must be positive when set")
        self.index = index
        self.max_neighbors = max_neighbors

    async def _find_neighbors(self, user_id: str, liked_ids: List[int]) -> List[str]:
        rater_lists = await asyncio.gather(
            *(self.index.get_raters_of_movie(movie_id, LIKED_THRESHOLD) for movie_id in liked_ids)
        )
        # dict keeps discovery order, which drives tie-breaking later
        neighbors: Dict[str, None] = {}
        for raters in rater_lists:
            for rater in raters:
                if rater.user_id != user_id and rater.rating >= LIKED_THRESHOLD:
                    neighbors.setdefault(rater.user_id, None)
        found = list(neighbors)
        if self.max_neighbors is not None:
            found = found[:self.max_neighbors]
        return found

    async def _score_candidates(self, neighbors: List[str], watched_ids: set) -> Dict[int, schemas.Recommendation]:
        neighbor_ratings = await asyncio.gather(
            *(self.index.get_ratings_by_user(neighbor_id) for neighbor_id in neighbors)
        )
        candidates: Dict[int, schemas.Recommendation] = {}
        for ratings in neighbor_ratings:
            for rating in ratings:
                if rating.rating < LIKED_THRESHOLD or rating.movie_id in watched_ids:
                    continue
                candidate = candidates.get(rating.movie_id)
                if candidate is None:
                    # Display fields come from the first rating seen for the movie
                    candidates[rating.movie_id] = schemas.Recommendation(
                        movie_id=rating.movie_id,
                        score=rating.rating,
                        title=rating.title,
                        poster_path=rating.poster_path,
                    )
                else:
                    candidate.score += rating.rating
        return candidates

    async def recommend(self, user_id: str, limit: int = 10) -> List[schemas.Recommendation]:
        """
        Returns up to `limit` recommendations, highest score first.

        An empty list means cold start (no liked movies or no neighbors).
        Store failures propagate unchanged; nothing partial is returned.
        """
        crud.validate_user_id(user_id)
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise InvalidInput(f"limit must be a positive integer, got {limit!r}")

        own_ratings = await self.index.get_ratings_by_user(user_id)
        watched_ids = {r.movie_id for r in own_ratings}
        liked_ids = list(dict.fromkeys(r.movie_id for r in own_ratings if r.rating >= LIKED_THRESHOLD))
        if not liked_ids:
            return []

        neighbors = await self._find_neighbors(user_id, liked_ids)
        if not neighbors:
            return []

        candidates = await self._score_candidates(neighbors, watched_ids)

        # sorted() is stable: equal scores keep first-encountered order
        ranked = sorted(candidates.values(), key=lambda rec: rec.score, reverse=True)
        return ranked[:limit]
