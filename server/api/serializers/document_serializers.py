from rest_framework import serializers

from main.models import Certificate, Student


class CertificateSerializer(serializers.ModelSerializer):
    student = serializers.PrimaryKeyRelatedField(queryset=Student.objects)
    student_name = serializers.CharField(source='student.full_name', read_only=True)
    student_matricule = serializers.CharField(source='student.matricule', read_only=True)
    document_name = serializers.CharField(read_only=True)
    signatory_display = serializers.CharField(source='get_signatory_display', read_only=True)
    academic_year = serializers.CharField(max_length=20, required=False)
    issue_date = serializers.DateField(required=False)

    class Meta:
        model = Certificate
        fields = [
            'id', 'student', 'student_name', 'student_matricule',
            'document_type', 'document_name', 'academic_year', 'issue_date',
            'signatory', 'signatory_display', 'metadata', 'status',
            'created_by', 'created_at',
        ]
        read_only_fields = ['created_by', 'created_at']

    def validate_metadata(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Metadata must be an object.")
        return value


class CertificateStatsSerializer(serializers.Serializer):
    total_generated = serializers.IntegerField()
    pending = serializers.IntegerField()
    this_month = serializers.IntegerField()


class ReportFilterSerializer(serializers.Serializer):
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    academic_year = serializers.CharField(max_length=20, required=False)

    def validate(self, attrs):
        start, end = attrs.get('start_date'), attrs.get('end_date')
        if start and end and start > end:
            raise serializers.ValidationError({'end_date': "La date de fin précède la date de début."})
        return attrs
