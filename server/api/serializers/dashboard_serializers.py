from rest_framework import serializers


class RecentPaymentSerializer(serializers.Serializer):
    id = serializers.IntegerField(read_only=True)
    student_name = serializers.CharField(source='student.full_name', read_only=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    payment_type = serializers.CharField(read_only=True)
    payment_date = serializers.DateField(read_only=True)
    receipt_number = serializers.CharField(read_only=True)


class StudentLimitSerializer(serializers.Serializer):
    current_count = serializers.IntegerField(read_only=True)
    max_limit = serializers.IntegerField(read_only=True)
    plan = serializers.CharField(read_only=True)
    can_add = serializers.BooleanField(read_only=True)
    remaining = serializers.IntegerField(read_only=True)
    is_unlimited = serializers.BooleanField(read_only=True)


class DashboardStatsSerializer(serializers.Serializer):
    """School dashboard figures"""
    total_students = serializers.IntegerField(read_only=True)
    active_students = serializers.IntegerField(read_only=True)
    pending_students = serializers.IntegerField(read_only=True)
    total_classes = serializers.IntegerField(read_only=True)
    pending_enrollments = serializers.IntegerField(read_only=True)
    monthly_revenue = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    total_collected = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    pending_payments = serializers.IntegerField(read_only=True)
    recent_payments = RecentPaymentSerializer(many=True, read_only=True)
    student_limit = StudentLimitSerializer(read_only=True)


class AdminStatsSerializer(serializers.Serializer):
    """Platform figures for the super-admin console"""
    total_schools = serializers.IntegerField(read_only=True)
    active_schools = serializers.IntegerField(read_only=True)
    total_students = serializers.IntegerField(read_only=True)
    total_users = serializers.IntegerField(read_only=True)
    total_revenue = serializers.DecimalField(max_digits=16, decimal_places=2, read_only=True)
    schools_by_plan = serializers.DictField(child=serializers.IntegerField(), read_only=True)
    active_subscriptions = serializers.IntegerField(read_only=True)
    subscription_revenue = serializers.DecimalField(max_digits=16, decimal_places=2, read_only=True)
