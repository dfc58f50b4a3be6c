import pytest


class FirstChoiceRng:
    """Stand-in random source: always the first option, mid-range jitter"""

    def choice(self, seq):
        return seq[0]

    def random(self):
        return 0.5


@pytest.fixture
def first_choice_rng():
    return FirstChoiceRng()
