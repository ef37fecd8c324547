from .runner import GenerationPipeline
from .parsing import parse_questions

__all__ = ['GenerationPipeline', 'parse_questions']
