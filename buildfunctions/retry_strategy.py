import random


class RetryStrategy:
    statuses = {502, 503, 504, 520, 524}

    @staticmethod
    def sleep_times():
        sleep_times = [1, 3, 9, 27]  # These are in seconds

        return [2 * random.random() * t for t in sleep_times]
