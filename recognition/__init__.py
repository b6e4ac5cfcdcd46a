"""Face matching for the classroom attendance monitor."""
from .face_matcher import FaceMatcher, MatchResult, match_face, face_distance
__all__ = ['FaceMatcher', 'MatchResult', 'match_face', 'face_distance']
