"""
Automatic coding of open-ended survey responses.

Responses are preprocessed, grouped into categories with either keyword
theming or TF-IDF agglomerative clustering, and then each response is
assigned to its best-matching category.
"""

import logging
from collections import Counter
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
from sklearn.feature_extraction.text import CountVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from .text_processing import TextNormalizer, to_text, BLANK_MARKERS
from .theme_library import THEME_LIBRARY, match_theme, theme_for_keyword
from ..data_processing.models import (
    CodingSettings, OpenEndCategory, OpenEndCoding, OpenEndResponse
)

OTHER_CATEGORY_ID = 'cat_other'


class OpenEndCoder:
    """
    Open-ended response coder.

    Features:
    - Keyword theming against the shared theme library
    - TF-IDF vectors with greedy average-linkage clustering
    - Keyword-overlap assignment of every response to one category
    """

    def __init__(self, settings: Optional[CodingSettings] = None):
        """
        Initialize OpenEndCoder.

        Parameters
        ----------
        settings : CodingSettings, optional
            Coding settings. Defaults to ``CodingSettings()``
        """
        self.settings = settings or CodingSettings()
        self.normalizer = TextNormalizer()
        self.logger = logging.getLogger(__name__)

    def code_responses(self, responses: Sequence[Any], question_column: str = '') -> OpenEndCoding:
        """
        Code a batch of free-text responses.

        Parameters
        ----------
        responses : sequence
            Raw cell values in row order; positions become ``row_index``
        question_column : str, optional
            Column the responses came from

        Returns
        -------
        OpenEndCoding
            Categories and one coded response per kept response
        """
        prepared = self.preprocess_responses(responses)
        self.logger.info(f"Coding {len(prepared)} responses for '{question_column}'")

        if self.settings.use_semantic_clustering:
            categories = self.semantic_clustering(prepared)
        else:
            categories = self.keyword_clustering(prepared)

        if not categories:
            self.logger.warning(f"No categories produced for '{question_column}'")
            coded = []
        else:
            coded = self.assign_responses(prepared, categories)

        return OpenEndCoding(
            question_column=question_column,
            responses=coded,
            categories=categories,
            settings=self.settings
        )

    def preprocess_responses(self, responses: Sequence[Any]) -> List[Tuple[str, int]]:
        """Keep non-blank responses as ``(text, row_index)`` pairs."""
        prepared = []
        for index, value in enumerate(responses):
            text = to_text(value)
            if text in BLANK_MARKERS:
                continue
            if self.settings.exclude_short_responses and len(text) < self.settings.min_response_length:
                continue
            prepared.append((text, index))
        return prepared

    def keyword_clustering(self, responses: List[Tuple[str, int]]) -> List[OpenEndCategory]:
        """
        Build categories from the theme library.

        Each response counts towards the theme with most keyword hits.
        Themes with at least ``min_category_size`` responses become
        categories, followed by an Other category for unmatched responses.
        """
        total = len(responses)
        matched = {index: [] for index in range(len(THEME_LIBRARY))}
        unmatched = []

        for text, _ in responses:
            theme_index = match_theme(text)
            if theme_index is None:
                unmatched.append(text)
            else:
                matched[theme_index].append(text)

        categories = []
        for theme_index, theme in enumerate(THEME_LIBRARY):
            texts = matched[theme_index]
            if texts and len(texts) >= self.settings.min_category_size:
                categories.append(OpenEndCategory(
                    id=f"cat_{theme_index}",
                    name=theme.name,
                    description=theme.description,
                    keywords=list(theme.keywords),
                    sample_responses=texts[:5],
                    response_count=len(texts),
                    confidence=len(texts) / total
                ))

        if unmatched and len(unmatched) >= self.settings.min_category_size:
            categories.append(OpenEndCategory(
                id=OTHER_CATEGORY_ID,
                name='Other/Miscellaneous',
                description='Responses that did not fit into other categories',
                keywords=[],
                sample_responses=unmatched[:5],
                response_count=len(unmatched),
                confidence=0.5
            ))

        return categories

    def build_vocabulary(self, documents: List[str]) -> Tuple[List[str], np.ndarray]:
        """
        Build the clustering vocabulary and a term count matrix.

        Terms must occur in at least 2 and at most 80% of the documents.
        Returns the sorted terms and a documents x terms count matrix.
        """
        vectorizer = CountVectorizer(
            tokenizer=self.normalizer.tokenize,
            lowercase=False,
            token_pattern=None,
            min_df=2,
            max_df=0.8
        )
        try:
            counts = vectorizer.fit_transform(documents)
        except ValueError:
            # No term survives the document frequency limits
            return [], np.zeros((len(documents), 0))
        return list(vectorizer.get_feature_names_out()), counts.toarray()

    def calculate_tfidf(self, documents: List[str]) -> np.ndarray:
        """
        TF-IDF matrix over the clustering vocabulary.

        Term frequency is the count over the document's token total and
        idf is ``ln(N / (df + 1))``.
        """
        vocabulary, counts = self.build_vocabulary(documents)
        if not vocabulary:
            return counts.astype(float)

        lengths = np.array([len(self.normalizer.tokenize(doc)) for doc in documents], dtype=float)
        tf = np.divide(counts, lengths[:, None], out=np.zeros(counts.shape), where=lengths[:, None] > 0)
        df = (counts > 0).sum(axis=0)
        idf = np.log(len(documents) / (df + 1))
        return tf * idf

    def hierarchical_clustering(self, tfidf: np.ndarray) -> List[List[int]]:
        """
        Greedy average-linkage clustering of response vectors.

        Starting from singletons, the closest pair of clusters (distance
        1 minus the mean pairwise cosine similarity) is merged until the
        cluster count reaches ``max_categories`` or the closest distance
        exceeds ``similarity_threshold``. Ties go to the first pair in
        row-major order.
        """
        n = tfidf.shape[0]
        clusters = [[index] for index in range(n)]
        if n == 0:
            return clusters

        similarity = cosine_similarity(tfidf) if tfidf.shape[1] else np.zeros((n, n))
        # Sum of pairwise similarities between every pair of clusters
        pair_sums = similarity.copy()
        max_categories = max(1, self.settings.max_categories)

        while len(clusters) > max_categories:
            sizes = np.array([len(cluster) for cluster in clusters], dtype=float)
            rows, cols = np.triu_indices(len(clusters), k=1)
            distances = 1 - pair_sums[rows, cols] / (sizes[rows] * sizes[cols])
            best = int(np.argmin(distances))
            if distances[best] > self.settings.similarity_threshold:
                break

            i, j = int(rows[best]), int(cols[best])
            clusters[i] = clusters[i] + clusters[j]
            del clusters[j]
            pair_sums[i, :] += pair_sums[j, :]
            pair_sums[:, i] += pair_sums[:, j]
            pair_sums = np.delete(np.delete(pair_sums, j, axis=0), j, axis=1)

        self.logger.debug(f"Clustering produced {len(clusters)} clusters from {n} responses")
        return [cluster for cluster in clusters if len(cluster) >= self.settings.min_category_size]

    def semantic_clustering(self, responses: List[Tuple[str, int]]) -> List[OpenEndCategory]:
        """Build categories from TF-IDF clusters of the responses."""
        documents = [text for text, _ in responses]
        if not documents:
            return []

        clusters = self.hierarchical_clustering(self.calculate_tfidf(documents))

        categories = []
        for index, cluster in enumerate(clusters):
            texts = [documents[member] for member in cluster]
            keywords = self.extract_cluster_keywords(texts)
            categories.append(OpenEndCategory(
                id=f"semantic_cat_{index}",
                name=self.generate_category_name(keywords),
                description='Auto-generated category based on semantic similarity',
                keywords=keywords,
                sample_responses=texts[:5],
                response_count=len(texts),
                confidence=0.8
            ))
        return categories

    def extract_cluster_keywords(self, texts: List[str], limit: int = 10) -> List[str]:
        """Most frequent tokens of a cluster that occur at least twice."""
        counts = Counter(token for text in texts for token in self.normalizer.tokenize(text))
        return [word for word, count in counts.most_common() if count >= 2][:limit]

    @staticmethod
    def generate_category_name(keywords: List[str]) -> str:
        """Name a cluster from its top keywords."""
        if not keywords:
            return 'Miscellaneous'

        top_keywords = keywords[:3]
        for keyword in top_keywords:
            theme = theme_for_keyword(keyword)
            if theme:
                return theme

        return ' & '.join(keyword.capitalize() for keyword in top_keywords[:2])

    @staticmethod
    def category_score(text: str, category: OpenEndCategory) -> float:
        """Fraction of the category's keywords found in the text."""
        if not category.keywords:
            return 0.0
        lower_text = text.lower()
        hits = sum(1 for keyword in category.keywords if keyword.lower() in lower_text)
        return hits / len(category.keywords)

    def assign_responses(self,
                         responses: List[Tuple[str, int]],
                         categories: List[OpenEndCategory]) -> List[OpenEndResponse]:
        """Assign every response to its best-scoring category (last one on ties at 0)."""
        coded = []
        for text, row_index in responses:
            best_category = categories[-1]
            best_score = 0.0
            for category in categories:
                score = self.category_score(text, category)
                if score > best_score:
                    best_score = score
                    best_category = category

            coded.append(OpenEndResponse(
                id=f"response_{row_index}",
                text=text,
                category_id=best_category.id,
                confidence=best_score,
                row_index=row_index
            ))
        return coded


def code_open_ended(responses: Sequence[Any],
                    settings: Optional[CodingSettings] = None,
                    question_column: str = '') -> OpenEndCoding:
    """Code responses with a new OpenEndCoder."""
    return OpenEndCoder(settings).code_responses(responses, question_column)
