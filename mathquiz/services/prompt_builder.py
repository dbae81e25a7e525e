import json
from typing import List
from ..models import PerformanceRecord

FIRST_PROBLEM_HINT = (
	"The student is just starting. Provide a very simple single-digit addition problem, "
	"set 'difficultyAdjustment' to 'initial' and give it an 'estimatedTime' of 5 seconds."
)

class PromptBuilder:
	def build(self, template_text: str, *, history: List[PerformanceRecord], target: str) -> str:
		if not history:
			return template_text + "\n" + FIRST_PROBLEM_HINT
		context = {
			"meta": {"target": target},
			"recent_performance": [
				{
					"question": r.question_text,
					"correctAnswer": r.correct_answer,
					"userAnswer": r.user_answer,
					"timeTaken": r.time_taken,
					"estimatedTime": r.estimated_time,
					"correct": r.correct,
					"difficultyAdjustment": r.difficulty_adjustment.value,
				}
				for r in history
			],
		}
		instructions = (
			"Use the CONTEXT JSON below to guide generation. "
			"recent_performance lists the student's latest rounds, oldest first. "
			"meta.target (harder/easier/baseline) summarises the recent window. "
			"Based on this time-sensitive analysis, generate the next single problem now. "
			"Return only the required JSON object."
		)
		return template_text + "\n" + instructions + "\n" + json.dumps(context)
