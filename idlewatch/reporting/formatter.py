"""Text formatter for IdleWatch session reports.

Renders per-day time-per-application totals as aligned plain text.
"""

from datetime import date, timedelta


class TextFormatter:
    """Formats timeline durations as human-readable plain text."""

    @staticmethod
    def format_duration(duration: timedelta) -> str:
        """Format a timedelta as 'Xh Ym' (e.g., '2h 15m').

        Truncates to whole minutes. Returns '0m' for zero/negative durations.
        """
        total_seconds = int(duration.total_seconds())
        if total_seconds < 0:
            total_seconds = 0
        total_minutes = total_seconds // 60
        hours = total_minutes // 60
        minutes = total_minutes % 60

        if hours == 0:
            return f"{minutes}m"
        return f"{hours}h {minutes}m"

    @staticmethod
    def format_day(
        day: date,
        buckets: dict[str, timedelta],
        min_duration: timedelta = timedelta(minutes=5),
    ) -> str:
        """Render one day's buckets, longest first.

        Buckets shorter than or equal to *min_duration* are left out of the
        listing but still count towards the total. Returns lines like::

          2024-03-04:
                           com.apple.Terminal  2h 15m
                                     **IDLE**  45m
                                        Total  3h 0m
        """
        lines = [f"{day.isoformat()}:"]
        ranked = sorted(buckets.items(), key=lambda item: item[1], reverse=True)
        shown = [(name, dur) for name, dur in ranked if dur > min_duration]
        total = sum(buckets.values(), timedelta(0))

        if not shown:
            lines.append("  No activity above threshold.")
        width = max([len(name) for name, _ in shown] + [len("Total"), 40])
        for name, dur in shown:
            lines.append(f"{name:>{width}}  {TextFormatter.format_duration(dur)}")
        lines.append(f"{'Total':>{width}}  {TextFormatter.format_duration(total)}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def format_days(
        durations: dict[date, dict[str, timedelta]],
        min_duration: timedelta = timedelta(minutes=5),
    ) -> str:
        """Render every day in *durations*, oldest first."""
        if not durations:
            return "No activity recorded.\n"
        return "\n".join(
            TextFormatter.format_day(day, durations[day], min_duration)
            for day in sorted(durations)
        )
