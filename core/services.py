from django.contrib.contenttypes.models import ContentType
from .models import DomainActivity


class ActivityService:
    @staticmethod
    def log_activity(actor, verb, target, visibility=DomainActivity.VISIBILITY_PARTICIPANTS, metadata=None):
        """
        Logs a domain activity. Records are never updated afterwards.
        """
        if metadata is None:
            metadata = {}

        return DomainActivity.objects.create(
            actor=actor,
            verb=verb,
            content_type=ContentType.objects.get_for_model(target),
            object_id=target.pk,
            visibility=visibility,
            metadata=metadata
        )

    @staticmethod
    def history_for(target, verb=None):
        """Activities logged against ``target``, newest first."""
        qs = DomainActivity.objects.filter(
            content_type=ContentType.objects.get_for_model(target),
            object_id=target.pk,
        )
        if verb:
            qs = qs.filter(verb=verb)
        return qs
